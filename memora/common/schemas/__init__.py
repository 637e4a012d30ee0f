"""
Memora Document Schemas

Moments (parent) and file contents (child) as stored in the document store.
"""

from .moment import (
    Moment,
    Geo,
    GeoPoint,
    ArtifactReference,
    ArtifactKind,
    FileContentDocument,
    FileMetadata,
    FileCategory,
    ExtractionStatus,
    utc_now_iso,
)
from .mappings import moment_mapping, file_content_mapping

__all__ = [
    "Moment",
    "Geo",
    "GeoPoint",
    "ArtifactReference",
    "ArtifactKind",
    "FileContentDocument",
    "FileMetadata",
    "FileCategory",
    "ExtractionStatus",
    "utc_now_iso",
    "moment_mapping",
    "file_content_mapping",
]
