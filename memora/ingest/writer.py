"""
Moment and File Ingestion

MomentWriter stores a new Moment with its embedding. FileIngestor stores
the searchable content of files attached to a Moment and records them on
the parent as artifacts.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..common.document_store import DocumentStore
from ..common.embedding_service import EmbeddingService
from ..common.errors import UpdateConflictError
from ..common.language import detect_language
from ..common.schemas import (
    ArtifactReference,
    ExtractionStatus,
    FileCategory,
    FileContentDocument,
    FileMetadata,
    Moment,
    utc_now_iso,
)
from .extractors import ContentExtractor, DefaultExtractor, ExtractionResult
from .file_types import category_to_kind, get_file_category, get_file_type, should_extract_content

logger = logging.getLogger("memora.ingest.writer")

FILE_CONCURRENCY = 3
ATTACH_ATTEMPTS = 3


@dataclass
class UploadedFile:
    """A file already written to object storage.

    ``text`` is content the client already extracted; it is used as the
    file's text regardless of MIME type.
    """
    filename: str
    mime_type: str
    size: int
    gcs_path: str
    data: bytes = b""
    thumb_path: Optional[str] = None
    description: Optional[str] = None
    text: Optional[str] = None


async def _embed_or_none(
    embedding: Optional[EmbeddingService], text: Optional[str], timeout: float
) -> Optional[List[float]]:
    """Embedding is optional on write; failures leave the document without a vector."""
    if not text or not text.strip() or embedding is None or not embedding.is_available:
        return None
    try:
        return await asyncio.wait_for(embedding.embed_single(text), timeout=timeout)
    except Exception as e:
        logger.warning("Embedding failed, storing without vector: %s", e)
        return None


class MomentWriter:
    """Creates Moments"""

    def __init__(
        self,
        store: DocumentStore,
        embedding_service: Optional[EmbeddingService] = None,
        embedding_timeout: float = 10.0,
    ):
        self._store = store
        self._embedding = embedding_service
        self._embedding_timeout = embedding_timeout

    async def ingest_moment(self, user_id: str, payload: Dict[str, Any]) -> Moment:
        """
        Store a new Moment.

        Args:
            user_id: Owner of the moment
            payload: Moment fields; ``moment_id`` and ``timestamp`` are filled in when missing

        Returns:
            The stored Moment
        """
        data = dict(payload)
        data["user_id"] = user_id
        data["moment_id"] = data.get("moment_id") or str(uuid.uuid4())
        data["timestamp"] = data.get("timestamp") or utc_now_iso()
        data.pop("vector", None)

        moment = Moment.model_validate(data)
        if not moment.language and moment.text:
            moment.language = detect_language(moment.text).code

        moment.vector = await _embed_or_none(
            self._embedding, moment.text_en or moment.text, self._embedding_timeout
        )

        index = await self._store.index_moment(moment.moment_id, moment.model_dump(mode="json", exclude_none=True))
        logger.info(
            "Stored moment %s in %s (vector=%s)", moment.moment_id, index, moment.vector is not None
        )
        return moment


class FileIngestor:
    """
    Stores file contents for a Moment and attaches the files to it.

    Files are processed concurrently, at most three at a time. The parent
    is updated once after all files are stored.
    """

    def __init__(
        self,
        store: DocumentStore,
        embedding_service: Optional[EmbeddingService] = None,
        extractor: Optional[ContentExtractor] = None,
        concurrency: int = FILE_CONCURRENCY,
        embedding_timeout: float = 10.0,
    ):
        self._store = store
        self._embedding = embedding_service
        self._extractor = extractor or DefaultExtractor()
        self._concurrency = concurrency
        self._embedding_timeout = embedding_timeout

    async def ingest_files(
        self, moment_id: str, user_id: str, files: List[UploadedFile]
    ) -> List[ArtifactReference]:
        """
        Store every file and attach it to its Moment.

        Returns:
            Artifact references in input order
        """
        if not files:
            return []

        logger.info("Ingesting %d file(s) for moment %s", len(files), moment_id)
        semaphore = asyncio.Semaphore(self._concurrency)

        async def guarded(upload: UploadedFile) -> Tuple[ArtifactReference, FileMetadata]:
            async with semaphore:
                return await self._ingest_file(moment_id, user_id, upload)

        stored = await asyncio.gather(*(guarded(f) for f in files))
        await self._attach_to_parent(moment_id, user_id, stored)
        return [artifact for artifact, _ in stored]

    async def _ingest_file(
        self, moment_id: str, user_id: str, upload: UploadedFile
    ) -> Tuple[ArtifactReference, FileMetadata]:
        category = get_file_category(upload.mime_type)
        artifact = ArtifactReference(
            artifact_id=str(uuid.uuid4()),
            kind=category_to_kind(category),
            name=upload.filename,
            mime=upload.mime_type,
            size=upload.size,
            gcs_path=upload.gcs_path,
            thumb_path=upload.thumb_path,
        )
        document = FileContentDocument(
            content_id=str(uuid.uuid4()),
            artifact_id=artifact.artifact_id,
            moment_id=moment_id,
            user_id=user_id,
            file_name=upload.filename,
            description=upload.description,
            file_type=get_file_type(upload.filename) or "other",
            file_category=category,
            mime_type=upload.mime_type,
            file_size=upload.size,
            gcs_path=upload.gcs_path,
            thumb_path=upload.thumb_path,
        )

        result = await self._extract(upload, category)
        if result is None:
            document.set_status(ExtractionStatus.NOT_APPLICABLE)
        elif not result.success:
            document.metadata = result.metadata
            document.set_status(ExtractionStatus.FAILED, result.error)
        else:
            document.metadata = result.metadata
            document.extracted_text = result.text
            if result.text:
                language = detect_language(result.text)
                artifact.content_language = language.code
                if language.is_english:
                    document.extracted_text_en = result.text
                document.content_vector = await _embed_or_none(
                    self._embedding, result.text, self._embedding_timeout
                )
                artifact.has_content = True
            artifact.page_count = result.metadata.page_count
            artifact.duration_seconds = result.metadata.duration_seconds
            document.set_status(ExtractionStatus.SUCCESS)

        await self._store.index_file_content(document.content_id, document.model_dump(mode="json", exclude_none=True))
        logger.info(
            "Stored file content %s for %s (%s)",
            document.content_id, upload.filename, document.extraction_status.value,
        )
        return artifact, document.metadata

    async def _extract(self, upload: UploadedFile, category: FileCategory) -> Optional[ExtractionResult]:
        """Run the extractor; client-supplied text wins over extracted text."""
        supplied = (upload.text or "").strip()

        result = None
        if should_extract_content(category) and (upload.data or not supplied):
            try:
                result = await self._extractor.extract(upload.data, upload.filename, upload.mime_type, category)
            except Exception as e:
                logger.warning("Extraction failed for %s: %s", upload.filename, e)
                result = ExtractionResult(success=False, error=str(e))

        if not supplied:
            return result

        metadata = result.metadata if result is not None and result.success else FileMetadata()
        metadata.word_count = len(supplied.split())
        return ExtractionResult(success=True, text=supplied, metadata=metadata)

    async def _attach_to_parent(
        self, moment_id: str, user_id: str, stored: List[Tuple[ArtifactReference, FileMetadata]]
    ) -> None:
        """
        Append the stored files to the parent Moment.

        The update is conditional on the parent's sequence number; if another
        writer got there first the parent is re-read and the files are applied
        again on top of its changes.

        Raises:
            UpdateConflictError: The parent kept changing for every attempt
        """
        for attempt in range(1, ATTACH_ATTEMPTS + 1):
            hit = await self._store.find_moment(moment_id)
            if hit is None or hit["_source"].get("user_id") != user_id:
                logger.warning("Moment %s not found; %d file(s) stored without a parent", moment_id, len(stored))
                return

            moment = Moment.model_validate(hit["_source"])
            for artifact, metadata in stored:
                moment.attach(artifact, metadata)

            partial = moment.model_dump(
                mode="json",
                include={"artifacts", "has_files", "file_count", "total_file_size", "geo"},
                exclude_none=True,
            )
            try:
                await self._store.update(
                    hit["_index"],
                    hit["_id"],
                    partial,
                    if_seq_no=hit.get("_seq_no"),
                    if_primary_term=hit.get("_primary_term"),
                )
                return
            except UpdateConflictError:
                logger.info("Moment %s changed while attaching files (attempt %d/%d)", moment_id, attempt, ATTACH_ATTEMPTS)

        logger.error("Gave up attaching %d file(s) to moment %s", len(stored), moment_id)
        raise UpdateConflictError(f"Moment {moment_id} kept changing; files were stored but not attached")
