"""
Memora Common Module

Shared infrastructure for ingestion and the recall pipeline.
"""

from .config import MemoraConfig, load_config
from .document_store import DocumentStore, Collection
from .embedding_service import EmbeddingService
from .errors import MemoraError, RetrievalError, RetrievalUnavailableError, SigningError, UpdateConflictError
from .llm_client import LLMClient
from .object_storage import ObjectStorage
from .outcome import Ok, Degraded, Outcome

__all__ = [
    "MemoraConfig",
    "load_config",
    "DocumentStore",
    "Collection",
    "EmbeddingService",
    "MemoraError",
    "RetrievalError",
    "RetrievalUnavailableError",
    "SigningError",
    "UpdateConflictError",
    "LLMClient",
    "ObjectStorage",
    "Ok",
    "Degraded",
    "Outcome",
]
