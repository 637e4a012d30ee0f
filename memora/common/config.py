"""
Configuration Management for Memora

Loads configuration from ~/.memora/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

logger = logging.getLogger("memora.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".memora"
CONFIG_PATH = CONFIG_DIR / "config.json"
LOGS_DIR = CONFIG_DIR / "logs"


@dataclass
class ElasticsearchConfig:
    """Document store configuration"""
    host: str = "http://localhost:9200"
    username: str = "elastic"
    password: str = "changeme"
    index_prefix: str = "life-moments"
    file_index: str = "file-contents"
    timeout_seconds: float = 15.0


@dataclass
class EmbeddingConfig:
    """Embedding model configuration"""
    mode: str = "openai"  # OpenAI-compatible endpoint, or "femb" (fastembed, on-device)
    model: str = "nomic-ai/nomic-embed-text-v1.5"
    api_key: str = ""
    base_url: str = "https://api.fireworks.ai/inference/v1"
    dims: int = 768
    timeout_seconds: float = 10.0


@dataclass
class LLMConfig:
    """Completion provider configuration shared by planner and composer"""
    provider: str = "openai"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str = ""
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash-exp"
    planner_model: str = ""  # falls back to the provider model
    answer_model: str = ""
    timeout_seconds: float = 30.0


@dataclass
class StorageConfig:
    """Object storage (GCS) configuration"""
    bucket: str = ""
    project_id: str = ""
    signed_url_ttl_minutes: int = 10


@dataclass
class RetrieverConfig:
    """Retriever configuration"""
    max_artifacts: int = 8
    file_query_min_size: int = 3
    request_timeout_seconds: float = 60.0


@dataclass
class MemoraConfig:
    """Main Memora configuration"""
    elasticsearch: ElasticsearchConfig = field(default_factory=ElasticsearchConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    retriever: RetrieverConfig = field(default_factory=RetrieverConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_elasticsearch_config(data: dict) -> ElasticsearchConfig:
    """Parse elasticsearch section from config dict"""
    es_data = data.get("elasticsearch", {})
    return ElasticsearchConfig(
        host=es_data.get("host", "http://localhost:9200"),
        username=es_data.get("username", "elastic"),
        password=es_data.get("password", "changeme"),
        index_prefix=es_data.get("index_prefix", "life-moments"),
        file_index=es_data.get("file_index", "file-contents"),
        timeout_seconds=es_data.get("timeout_seconds", 15.0),
    )


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    """Parse embedding section from config dict"""
    embedding_data = data.get("embedding", {})
    return EmbeddingConfig(
        mode=embedding_data.get("mode", "openai"),
        model=embedding_data.get("model", "nomic-ai/nomic-embed-text-v1.5"),
        api_key=embedding_data.get("api_key", ""),
        base_url=embedding_data.get("base_url", "https://api.fireworks.ai/inference/v1"),
        dims=embedding_data.get("dims", 768),
        timeout_seconds=embedding_data.get("timeout_seconds", 10.0),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        provider=llm_data.get("provider", "openai"),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", "claude-sonnet-4-20250514"),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", "gpt-4o-mini"),
        openai_base_url=llm_data.get("openai_base_url", ""),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", "gemini-2.0-flash-exp"),
        planner_model=llm_data.get("planner_model", ""),
        answer_model=llm_data.get("answer_model", ""),
        timeout_seconds=llm_data.get("timeout_seconds", 30.0),
    )


def _parse_storage_config(data: dict) -> StorageConfig:
    """Parse storage section from config dict"""
    storage_data = data.get("storage", {})
    return StorageConfig(
        bucket=storage_data.get("bucket", ""),
        project_id=storage_data.get("project_id", ""),
        signed_url_ttl_minutes=storage_data.get("signed_url_ttl_minutes", 10),
    )


def _parse_retriever_config(data: dict) -> RetrieverConfig:
    """Parse retriever section from config dict"""
    retriever_data = data.get("retriever", {})
    return RetrieverConfig(
        max_artifacts=retriever_data.get("max_artifacts", 8),
        file_query_min_size=retriever_data.get("file_query_min_size", 3),
        request_timeout_seconds=retriever_data.get("request_timeout_seconds", 60.0),
    )


def load_config() -> MemoraConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.memora/config.json)
    3. Default values
    """
    config = MemoraConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.elasticsearch = _parse_elasticsearch_config(data)
            config.embedding = _parse_embedding_config(data)
            config.llm = _parse_llm_config(data)
            config.storage = _parse_storage_config(data)
            config.retriever = _parse_retriever_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    if os.getenv("ES_HOST"):
        config.elasticsearch.host = os.getenv("ES_HOST")
    if os.getenv("ES_USERNAME"):
        config.elasticsearch.username = os.getenv("ES_USERNAME")
    if os.getenv("ES_PASSWORD"):
        config.elasticsearch.password = os.getenv("ES_PASSWORD")
        config._env_sourced_keys.add("es_password")
    if os.getenv("ES_INDEX_PREFIX"):
        config.elasticsearch.index_prefix = os.getenv("ES_INDEX_PREFIX")
    if os.getenv("ES_FILE_INDEX"):
        config.elasticsearch.file_index = os.getenv("ES_FILE_INDEX")

    if os.getenv("EMBEDDING_MODE"):
        config.embedding.mode = os.getenv("EMBEDDING_MODE")
    if os.getenv("EMBEDDING_MODEL"):
        config.embedding.model = os.getenv("EMBEDDING_MODEL")
    if os.getenv("EMBEDDING_BASE_URL"):
        config.embedding.base_url = os.getenv("EMBEDDING_BASE_URL")
    if os.getenv("FIREWORKS_API_KEY"):
        config.embedding.api_key = os.getenv("FIREWORKS_API_KEY")
        config._env_sourced_keys.add("embedding_api_key")

    if os.getenv("GCS_BUCKET"):
        config.storage.bucket = os.getenv("GCS_BUCKET")
    if os.getenv("GCP_PROJECT_ID"):
        config.storage.project_id = os.getenv("GCP_PROJECT_ID")

    # LLM env var overrides (target config.llm, track env-sourced keys)
    _env_llm_map = {
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "OPENAI_BASE_URL": "openai_base_url",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
        "MEMORA_LLM_PROVIDER": "provider",
        "MEMORA_PLANNER_MODEL": "planner_model",
        "MEMORA_ANSWER_MODEL": "answer_model",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    return config


def save_config(config: MemoraConfig) -> None:
    """Save configuration to file.

    Secrets that were sourced from environment variables are written
    as empty strings so that they are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = {
        "provider": config.llm.provider,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "openai_api_key": config.llm.openai_api_key,
        "openai_model": config.llm.openai_model,
        "openai_base_url": config.llm.openai_base_url,
        "google_api_key": config.llm.google_api_key,
        "google_model": config.llm.google_model,
        "planner_model": config.llm.planner_model,
        "answer_model": config.llm.answer_model,
        "timeout_seconds": config.llm.timeout_seconds,
    }
    for key in ("anthropic_api_key", "openai_api_key", "google_api_key"):
        if key in env_sourced:
            llm_section[key] = ""

    data = {
        "elasticsearch": {
            "host": config.elasticsearch.host,
            "username": config.elasticsearch.username,
            "password": "" if "es_password" in env_sourced else config.elasticsearch.password,
            "index_prefix": config.elasticsearch.index_prefix,
            "file_index": config.elasticsearch.file_index,
            "timeout_seconds": config.elasticsearch.timeout_seconds,
        },
        "embedding": {
            "mode": config.embedding.mode,
            "model": config.embedding.model,
            "api_key": "" if "embedding_api_key" in env_sourced else config.embedding.api_key,
            "base_url": config.embedding.base_url,
            "dims": config.embedding.dims,
            "timeout_seconds": config.embedding.timeout_seconds,
        },
        "llm": llm_section,
        "storage": {
            "bucket": config.storage.bucket,
            "project_id": config.storage.project_id,
            "signed_url_ttl_minutes": config.storage.signed_url_ttl_minutes,
        },
        "retriever": {
            "max_artifacts": config.retriever.max_artifacts,
            "file_query_min_size": config.retriever.file_query_min_size,
            "request_timeout_seconds": config.retriever.request_timeout_seconds,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)


def ensure_directories() -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
