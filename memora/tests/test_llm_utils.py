"""Tests for shared LLM response parsing utilities."""

import pytest
from memora.common.llm_utils import parse_llm_json, flatten_answer


class TestParseLlmJson:
    def test_valid_json(self):
        assert parse_llm_json('{"key": "value"}') == {"key": "value"}

    def test_json_with_markdown_fences(self):
        raw = '```json\n{"time_intent": "first", "size": 2}\n```'
        assert parse_llm_json(raw) == {"time_intent": "first", "size": 2}

    def test_json_with_plain_fences(self):
        raw = '```\n{"a": 1}\n```'
        assert parse_llm_json(raw) == {"a": 1}

    def test_json_embedded_in_text(self):
        raw = 'Here is the plan: {"sort": "asc"} hope that helps.'
        assert parse_llm_json(raw) == {"sort": "asc"}

    def test_no_json_returns_none(self):
        assert parse_llm_json("This is not JSON at all") is None

    def test_empty_string_returns_none(self):
        assert parse_llm_json("") is None

    def test_non_object_json_returns_none(self):
        assert parse_llm_json('["a", "b"]') is None
        assert parse_llm_json('"just a string"') is None
        assert parse_llm_json("42") is None

    def test_invalid_json_with_braces_returns_none(self):
        assert parse_llm_json('{"broken: json') is None


class TestFlattenAnswer:
    def test_newlines_become_spaces(self):
        assert flatten_answer("First line.\nSecond line.") == "First line. Second line."

    def test_crlf_runs_collapse(self):
        assert flatten_answer("a\r\n\r\nb") == "a b"

    def test_strips_whitespace(self):
        assert flatten_answer("\n  answer  \n") == "answer"

    def test_truncates(self):
        result = flatten_answer("x" * 1000, limit=600)
        assert len(result) == 600

    def test_none_is_empty(self):
        assert flatten_answer(None) == ""
