"""
Ingest - Moment and File Writers

Stores Moments and the extracted content of files attached to them.

Key Components:
- MomentWriter: Creates Moments with language and embedding
- FileIngestor: Stores FileContentDocuments and attaches artifacts to the parent
- extractors: Text and metadata from plain text, PDF, DOCX and images
- file_types: MIME/extension taxonomy
"""

from .file_types import get_file_category, get_file_type, should_extract_content, category_to_kind
from .extractors import (
    ExtractionResult,
    ContentExtractor,
    PlainTextExtractor,
    PdfExtractor,
    DocxExtractor,
    ImageExtractor,
    DefaultExtractor,
    gps_from_exif,
)
from .writer import MomentWriter, FileIngestor, UploadedFile

__all__ = [
    "MomentWriter",
    "FileIngestor",
    "UploadedFile",
    "ExtractionResult",
    "ContentExtractor",
    "PlainTextExtractor",
    "PdfExtractor",
    "DocxExtractor",
    "ImageExtractor",
    "DefaultExtractor",
    "gps_from_exif",
    "get_file_category",
    "get_file_type",
    "should_extract_content",
    "category_to_kind",
]
