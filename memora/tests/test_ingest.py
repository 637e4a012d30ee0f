"""
Tests for MomentWriter and FileIngestor
"""

import asyncio
import logging
import pytest
from unittest.mock import Mock, AsyncMock

from memora.common.schemas import FileMetadata
from memora.ingest import (
    ExtractionResult,
    FileIngestor,
    MomentWriter,
    UploadedFile,
)
from memora.common.errors import UpdateConflictError


def make_store(parent=None):
    store = Mock()
    store.index_moment = AsyncMock(return_value="life-moments-2024-05")
    store.index_file_content = AsyncMock()
    store.find_moment = AsyncMock(return_value=parent)
    store.update = AsyncMock()
    return store


def make_embedding(vector=None, error=None):
    embedding = Mock()
    embedding.is_available = True
    embedding.embed_single = AsyncMock(return_value=vector or [0.6, 0.8], side_effect=error)
    return embedding


def stored_files(store):
    """Documents passed to index_file_content, by file name."""
    return {
        call.args[1]["file_name"]: call.args[1]
        for call in store.index_file_content.await_args_list
    }


def parent_hit(seq_no=None, primary_term=None, **source):
    data = {"moment_id": "m1", "user_id": "u1", "timestamp": "2024-05-02T09:30:00Z", "title": "DMV visit"}
    data.update(source)
    hit = {"_index": "life-moments-2024-05", "_id": "m1", "_source": data}
    if seq_no is not None:
        hit.update(_seq_no=seq_no, _primary_term=primary_term)
    return hit


TEXT_UPLOAD = UploadedFile(
    filename="notes.txt",
    mime_type="text/plain; charset=utf-8",
    size=27,
    gcs_path="gs://memora/u1/notes.txt",
    data=b"driver license renewed 2024",
)


class TestMomentWriter:
    @pytest.mark.asyncio
    async def test_fills_ids_language_and_vector(self):
        store = make_store()
        writer = MomentWriter(store, make_embedding(vector=[1.0, 0.0]))

        moment = await writer.ingest_moment("u1", {"title": "Paris Trip", "text": "We climbed the Eiffel Tower"})

        assert moment.moment_id
        assert moment.timestamp.endswith("Z")
        assert moment.user_id == "u1"
        assert moment.language == "en"
        assert moment.vector == [1.0, 0.0]

        moment_id, document = store.index_moment.await_args.args
        assert moment_id == moment.moment_id
        assert document["vector"] == [1.0, 0.0]
        assert "geo" not in document

    @pytest.mark.asyncio
    async def test_payload_cannot_set_owner_or_vector(self):
        store = make_store()
        writer = MomentWriter(store, make_embedding(vector=[1.0]))

        moment = await writer.ingest_moment("u1", {"user_id": "intruder", "vector": [9.9], "text": "hello there"})

        assert moment.user_id == "u1"
        assert moment.vector == [1.0]

    @pytest.mark.asyncio
    async def test_embedding_failure_stores_without_vector(self, caplog):
        store = make_store()
        writer = MomentWriter(store, make_embedding(error=RuntimeError("embed down")))

        with caplog.at_level(logging.WARNING, logger="memora.ingest.writer"):
            moment = await writer.ingest_moment("u1", {"moment_id": "m1", "text": "Morning at the DMV"})

        assert moment.vector is None
        assert "vector" not in store.index_moment.await_args.args[1]
        assert "storing without vector" in caplog.text

    @pytest.mark.asyncio
    async def test_prefers_english_text_for_embedding(self):
        embedding = make_embedding()
        writer = MomentWriter(make_store(), embedding)

        await writer.ingest_moment("u1", {"text": "에펠탑에 올라갔다", "text_en": "Climbed the Eiffel Tower"})

        embedding.embed_single.assert_awaited_once_with("Climbed the Eiffel Tower")

    @pytest.mark.asyncio
    async def test_no_embedding_service(self):
        moment = await MomentWriter(make_store()).ingest_moment("u1", {"text": "hello there"})
        assert moment.vector is None


class TestFileIngestor:
    @pytest.mark.asyncio
    async def test_text_file_success(self):
        store = make_store(parent=parent_hit())
        ingestor = FileIngestor(store, make_embedding(vector=[0.0, 1.0]))

        artifacts = await ingestor.ingest_files("m1", "u1", [TEXT_UPLOAD])

        document = stored_files(store)["notes.txt"]
        assert document["extraction_status"] == "success"
        assert document["extracted_text"] == "driver license renewed 2024"
        assert document["extracted_text_en"] == "driver license renewed 2024"
        assert document["content_vector"] == [0.0, 1.0]
        assert document["file_category"] == "document"
        assert document["file_type"] == "txt"
        assert document["moment_id"] == "m1"

        assert artifacts[0].kind == "document"
        assert artifacts[0].has_content is True
        assert artifacts[0].content_language == "en"
        assert artifacts[0].artifact_id == document["artifact_id"]

    @pytest.mark.asyncio
    async def test_statuses(self):
        store = make_store(parent=parent_hit())
        files = [
            UploadedFile("backup.zip", "application/zip", 1000, "gs://memora/u1/backup.zip", data=b"PK"),
            UploadedFile("clip.mp4", "video/mp4", 5000, "gs://memora/u1/clip.mp4"),
            UploadedFile("bad.txt", "text/plain", 3, "gs://memora/u1/bad.txt", data=b"\xff\xfe\xfa"),
        ]

        await FileIngestor(store).ingest_files("m1", "u1", files)

        documents = stored_files(store)
        assert documents["backup.zip"]["extraction_status"] == "not_applicable"
        assert documents["clip.mp4"]["extraction_status"] == "not_applicable"
        assert documents["bad.txt"]["extraction_status"] == "failed"
        assert "UTF-8" in documents["bad.txt"]["extraction_error"]

    @pytest.mark.asyncio
    async def test_pdf_bytes_extracted(self, pdf_bytes):
        store = make_store(parent=parent_hit())
        data = pdf_bytes("driver license renewed 2024")
        upload = UploadedFile("license.pdf", "application/pdf", len(data), "gs://memora/u1/license.pdf", data=data)

        artifacts = await FileIngestor(store).ingest_files("m1", "u1", [upload])

        document = stored_files(store)["license.pdf"]
        assert document["extraction_status"] == "success"
        assert document["extracted_text"] == "driver license renewed 2024"
        assert document["metadata"]["page_count"] == 1
        assert artifacts[0].has_content is True
        assert artifacts[0].page_count == 1

    @pytest.mark.asyncio
    async def test_supplied_text_used_for_any_mime(self):
        store = make_store(parent=parent_hit())
        upload = UploadedFile(
            filename="license.pdf",
            mime_type="application/pdf",
            size=27,
            gcs_path="gs://memora/u1/license.pdf",
            text="driver license renewed 2024",
        )

        artifacts = await FileIngestor(store).ingest_files("m1", "u1", [upload])

        document = stored_files(store)["license.pdf"]
        assert document["extraction_status"] == "success"
        assert document["extracted_text"] == "driver license renewed 2024"
        assert document["metadata"]["word_count"] == 4
        assert artifacts[0].has_content is True

    @pytest.mark.asyncio
    async def test_supplied_text_keeps_extracted_metadata(self):
        store = make_store(parent=parent_hit())
        extractor = Mock()
        extractor.extract = AsyncMock(return_value=ExtractionResult(
            success=True, metadata=FileMetadata(width=640, height=480, gps_latitude=48.85, gps_longitude=2.29),
        ))
        upload = UploadedFile(
            "eiffel.jpg", "image/jpeg", 100, "gs://memora/u1/eiffel.jpg", data=b"\xff\xd8", text="Eiffel Tower at night"
        )

        await FileIngestor(store, extractor=extractor).ingest_files("m1", "u1", [upload])

        document = stored_files(store)["eiffel.jpg"]
        assert document["extracted_text"] == "Eiffel Tower at night"
        assert document["metadata"]["width"] == 640
        assert store.update.await_args.args[2]["geo"] == {"lat": 48.85, "lon": 2.29}

    @pytest.mark.asyncio
    async def test_supplied_text_overrides_failed_extraction(self):
        store = make_store(parent=parent_hit())
        upload = UploadedFile(
            "scan.pdf", "application/pdf", 4, "gs://memora/u1/scan.pdf", data=b"\xff\xfe", text="passport scan"
        )
        extractor = Mock()
        extractor.extract = AsyncMock(return_value=ExtractionResult(success=False, error="broken"))

        await FileIngestor(store, extractor=extractor).ingest_files("m1", "u1", [upload])

        document = stored_files(store)["scan.pdf"]
        assert document["extraction_status"] == "success"
        assert "extraction_error" not in document

    @pytest.mark.asyncio
    async def test_extractor_exception_marks_failed(self):
        store = make_store(parent=parent_hit())
        extractor = Mock()
        extractor.extract = AsyncMock(side_effect=RuntimeError("ocr crashed"))

        artifacts = await FileIngestor(store, extractor=extractor).ingest_files(
            "m1", "u1", [UploadedFile("p.jpg", "image/jpeg", 10, "gs://memora/u1/p.jpg")]
        )

        document = stored_files(store)["p.jpg"]
        assert document["extraction_status"] == "failed"
        assert document["extraction_error"] == "ocr crashed"
        assert artifacts[0].kind == "photo"
        assert artifacts[0].has_content is False

    @pytest.mark.asyncio
    async def test_parent_updated_once_with_aggregates_and_geo(self):
        store = make_store(parent=parent_hit(geo={"city": "Seoul"}))
        extractor = Mock()
        extractor.extract = AsyncMock(return_value=ExtractionResult(
            success=True,
            text="",
            metadata=FileMetadata(gps_latitude=37.57, gps_longitude=126.98),
        ))
        files = [
            UploadedFile("a.jpg", "image/jpeg", 100, "gs://memora/u1/a.jpg", thumb_path="gs://memora/u1/t-a.jpg"),
            UploadedFile("b.jpg", "image/jpeg", 250, "gs://memora/u1/b.jpg"),
        ]

        await FileIngestor(store, extractor=extractor).ingest_files("m1", "u1", files)

        store.update.assert_awaited_once()
        index, doc_id, partial = store.update.await_args.args
        assert (index, doc_id) == ("life-moments-2024-05", "m1")
        assert partial["has_files"] is True
        assert partial["file_count"] == 2
        assert partial["total_file_size"] == 350
        assert partial["geo"] == {"city": "Seoul", "lat": 37.57, "lon": 126.98}
        assert [a["name"] for a in partial["artifacts"]] == ["a.jpg", "b.jpg"]
        assert partial["artifacts"][0]["thumb_path"] == "gs://memora/u1/t-a.jpg"
        assert set(partial) == {"artifacts", "has_files", "file_count", "total_file_size", "geo"}

    @pytest.mark.asyncio
    async def test_existing_artifacts_preserved(self):
        existing = [{"artifact_id": "old", "kind": "photo", "gcs_path": "gs://memora/u1/old.jpg", "size": 10}]
        store = make_store(parent=parent_hit(artifacts=existing, has_files=True, file_count=1, total_file_size=10))

        await FileIngestor(store).ingest_files("m1", "u1", [TEXT_UPLOAD])

        partial = store.update.await_args.args[2]
        assert partial["file_count"] == 2
        assert partial["total_file_size"] == 37
        assert partial["artifacts"][0]["artifact_id"] == "old"

    @pytest.mark.asyncio
    async def test_parent_update_is_conditional(self):
        store = make_store(parent=parent_hit(seq_no=12, primary_term=1))

        await FileIngestor(store).ingest_files("m1", "u1", [TEXT_UPLOAD])

        assert store.update.await_args.kwargs == {"if_seq_no": 12, "if_primary_term": 1}

    @pytest.mark.asyncio
    async def test_concurrent_attach_is_reapplied(self, caplog):
        first = parent_hit(seq_no=3, primary_term=1)
        other = {"artifact_id": "other", "kind": "photo", "gcs_path": "gs://memora/u1/other.jpg", "size": 5}
        second = parent_hit(
            artifacts=[other], has_files=True, file_count=1, total_file_size=5, seq_no=4, primary_term=1
        )
        store = make_store()
        store.find_moment = AsyncMock(side_effect=[first, second])
        store.update = AsyncMock(side_effect=[UpdateConflictError("changed"), None])

        with caplog.at_level(logging.INFO, logger="memora.ingest.writer"):
            await FileIngestor(store).ingest_files("m1", "u1", [TEXT_UPLOAD])

        assert store.update.await_count == 2
        partial = store.update.await_args.args[2]
        assert [a["artifact_id"] for a in partial["artifacts"]][0] == "other"
        assert partial["file_count"] == 2
        assert partial["total_file_size"] == 32
        assert store.update.await_args.kwargs["if_seq_no"] == 4
        assert "changed while attaching files" in caplog.text

    @pytest.mark.asyncio
    async def test_gives_up_after_repeated_conflicts(self):
        store = make_store(parent=parent_hit(seq_no=3, primary_term=1))
        store.update = AsyncMock(side_effect=UpdateConflictError("changed"))

        with pytest.raises(UpdateConflictError, match="kept changing"):
            await FileIngestor(store).ingest_files("m1", "u1", [TEXT_UPLOAD])

        assert store.update.await_count == 3
        store.index_file_content.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_parent_keeps_file_contents(self, caplog):
        store = make_store(parent=None)

        with caplog.at_level(logging.WARNING, logger="memora.ingest.writer"):
            artifacts = await FileIngestor(store).ingest_files("gone", "u1", [TEXT_UPLOAD])

        assert len(artifacts) == 1
        store.index_file_content.assert_awaited_once()
        store.update.assert_not_awaited()
        assert "Moment gone not found" in caplog.text

    @pytest.mark.asyncio
    async def test_parent_of_another_owner_not_updated(self):
        store = make_store(parent=parent_hit(user_id="someone-else"))

        await FileIngestor(store).ingest_files("m1", "u1", [TEXT_UPLOAD])

        store.index_file_content.assert_awaited_once()
        store.update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_at_most_three_files_in_flight(self):
        store = make_store(parent=parent_hit())
        in_flight = 0
        peak = 0

        async def extract(data, filename, mime_type, category):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return None

        extractor = Mock()
        extractor.extract = AsyncMock(side_effect=extract)
        files = [UploadedFile(f"{i}.jpg", "image/jpeg", 1, f"gs://memora/u1/{i}.jpg") for i in range(8)]

        artifacts = await FileIngestor(store, extractor=extractor).ingest_files("m1", "u1", files)

        assert peak == 3
        assert [a.name for a in artifacts] == [f"{i}.jpg" for i in range(8)]

    @pytest.mark.asyncio
    async def test_no_files(self):
        store = make_store()
        assert await FileIngestor(store).ingest_files("m1", "u1", []) == []
        store.find_moment.assert_not_awaited()
