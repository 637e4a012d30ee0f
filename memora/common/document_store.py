"""
Document Store

Async wrapper over Elasticsearch for the two collections Memora searches:
- Moments: monthly indices ``<prefix>-YYYY-MM``, read through ``<prefix>-*``
- FileContents: a single ``file-contents`` index

The store knows index names and wire calls only. Query bodies are built
by ``memora.retriever.queries``.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from elasticsearch import AsyncElasticsearch, ConflictError, NotFoundError

from .errors import UpdateConflictError
from .schemas import moment_mapping, file_content_mapping

logger = logging.getLogger("memora.common.document_store")

# Body keys whose client keyword differs from the wire name
_BODY_KEY_ALIASES = {"_source": "source"}


class Collection(str, Enum):
    """Logical collections"""
    MOMENTS = "moments"
    FILE_CONTENTS = "file_contents"


class DocumentStore:
    """
    Thin async facade over ``AsyncElasticsearch``.

    Errors from the client propagate; callers decide whether a failure
    is fatal or a degradation.
    """

    def __init__(
        self,
        client: AsyncElasticsearch,
        index_prefix: str = "life-moments",
        file_index: str = "file-contents",
        dims: int = 768,
    ):
        self._client = client
        self._index_prefix = index_prefix
        self._file_index = file_index
        self._dims = dims

    @classmethod
    def from_config(cls, es_config, dims: int = 768) -> "DocumentStore":
        client = AsyncElasticsearch(
            es_config.host,
            basic_auth=(es_config.username, es_config.password) if es_config.username else None,
            request_timeout=es_config.timeout_seconds,
        )
        return cls(
            client,
            index_prefix=es_config.index_prefix,
            file_index=es_config.file_index,
            dims=dims,
        )

    # ------------------------------------------------------------------
    # Index names
    # ------------------------------------------------------------------

    def moments_index_for(self, when: Optional[datetime] = None) -> str:
        """Monthly write index for moments."""
        when = when or datetime.now(timezone.utc)
        return f"{self._index_prefix}-{when.year}-{when.month:02d}"

    def read_index(self, collection: Collection) -> str:
        if collection == Collection.MOMENTS:
            return f"{self._index_prefix}-*"
        return self._file_index

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def search(self, collection: Collection, body: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Run a search body against a collection and return raw hits."""
        kwargs = {_BODY_KEY_ALIASES.get(k, k): v for k, v in body.items()}
        response = await self._client.search(index=self.read_index(collection), **kwargs)
        return list(response["hits"]["hits"])

    async def get_by_id(self, collection: Collection, doc_id: str) -> Optional[Dict[str, Any]]:
        """Point lookup. Returns the source document or None when missing."""
        if collection == Collection.MOMENTS:
            hit = await self.find_moment(doc_id)
            return hit["_source"] if hit else None
        try:
            response = await self._client.get(index=self._file_index, id=doc_id)
        except NotFoundError:
            return None
        return response["_source"]

    async def find_moment(self, moment_id: str) -> Optional[Dict[str, Any]]:
        """
        Exact-match lookup of a moment across monthly indices (size 1).

        The hit carries ``_seq_no``/``_primary_term`` for conditional updates.
        """
        hits = await self.search(
            Collection.MOMENTS,
            {
                "query": {"term": {"moment_id": moment_id}},
                "size": 1,
                "seq_no_primary_term": True,
                "_source": {"excludes": ["vector"]},
            },
        )
        return hits[0] if hits else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def index_moment(self, moment_id: str, document: Dict[str, Any], when: Optional[datetime] = None) -> str:
        index = self.moments_index_for(when)
        await self._client.index(index=index, id=moment_id, document=document, refresh="wait_for")
        return index

    async def index_file_content(self, content_id: str, document: Dict[str, Any]) -> None:
        await self._client.index(index=self._file_index, id=content_id, document=document, refresh="wait_for")

    async def update(
        self,
        index: str,
        doc_id: str,
        partial: Dict[str, Any],
        if_seq_no: Optional[int] = None,
        if_primary_term: Optional[int] = None,
    ) -> None:
        """
        Partial update of a document in a concrete index.

        With ``if_seq_no``/``if_primary_term`` the write only applies if the
        document is unchanged since it was read.

        Raises:
            UpdateConflictError: The document changed in between
        """
        kwargs = {}
        if if_seq_no is not None and if_primary_term is not None:
            kwargs = {"if_seq_no": if_seq_no, "if_primary_term": if_primary_term}
        try:
            await self._client.update(index=index, id=doc_id, doc=partial, refresh="wait_for", **kwargs)
        except ConflictError as e:
            raise UpdateConflictError(f"{index}/{doc_id} changed concurrently: {e}") from e

    # ------------------------------------------------------------------
    # Index management
    # ------------------------------------------------------------------

    async def create_indices(self) -> List[str]:
        """Create the current moments index and the file-contents index if missing."""
        created = []
        targets = [
            (self.moments_index_for(), moment_mapping(self._dims)),
            (self._file_index, file_content_mapping(self._dims)),
        ]
        for index, mapping in targets:
            if await self._client.indices.exists(index=index):
                logger.info("Index %s already exists", index)
                continue
            await self._client.indices.create(index=index, **mapping)
            logger.info("Created index %s", index)
            created.append(index)
        return created

    async def close(self) -> None:
        await self._client.close()
