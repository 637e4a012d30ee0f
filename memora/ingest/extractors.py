"""
Content Extractors

Pull searchable text and metadata out of uploaded file bytes.

Key Components:
- PlainTextExtractor: ``text/*`` documents and source code
- PdfExtractor: PDF text, page count and author (pdfminer.six)
- DocxExtractor: Word paragraphs and core properties (python-docx)
- ImageExtractor: dimensions, camera EXIF and GPS (Pillow)
- DefaultExtractor: routes a file to the first extractor that handles it

Parsers are imported on first use and run in a worker thread.
"""

import asyncio
import io
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from ..common.schemas import FileCategory, FileMetadata, GeoPoint
from .file_types import base_mime_type

logger = logging.getLogger("memora.ingest.extractors")

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

# EXIF tags
_TAG_MAKE = 0x010F
_TAG_MODEL = 0x0110
_TAG_DATETIME = 0x0132
_TAG_DATETIME_ORIGINAL = 0x9003
_IFD_EXIF = 0x8769
_IFD_GPS = 0x8825

# GPS IFD tags
_GPS_LAT_REF = 1
_GPS_LAT = 2
_GPS_LON_REF = 3
_GPS_LON = 4
_GPS_ALT_REF = 5
_GPS_ALT = 6

_EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"


@dataclass
class ExtractionResult:
    success: bool
    text: Optional[str] = None
    metadata: FileMetadata = field(default_factory=FileMetadata)
    error: Optional[str] = None


class ContentExtractor(Protocol):
    """Pulls text and metadata out of a file.

    Returning None means the extractor has nothing to offer for this file.
    """

    async def extract(
        self, data: bytes, filename: str, mime_type: str, category: FileCategory
    ) -> Optional[ExtractionResult]:
        ...


def _text_result(text: Optional[str], **metadata) -> ExtractionResult:
    text = (text or "").strip()
    return ExtractionResult(
        success=True,
        text=text,
        metadata=FileMetadata(word_count=len(text.split()), **metadata),
    )


class PlainTextExtractor:
    """Decodes ``text/*`` documents and code files."""

    async def extract(
        self, data: bytes, filename: str, mime_type: str, category: FileCategory
    ) -> Optional[ExtractionResult]:
        if category == FileCategory.DOCUMENT and not base_mime_type(mime_type).startswith("text/"):
            return None
        if category not in (FileCategory.DOCUMENT, FileCategory.CODE):
            return None
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            return ExtractionResult(success=False, error=f"Not valid UTF-8: {e}")
        return _text_result(text)


class PdfExtractor:
    """Text layer, page count and author of a PDF."""

    async def extract(
        self, data: bytes, filename: str, mime_type: str, category: FileCategory
    ) -> Optional[ExtractionResult]:
        if base_mime_type(mime_type) != PDF_MIME:
            return None
        try:
            return await asyncio.to_thread(self._extract_sync, data)
        except Exception as e:
            logger.warning("PDF extraction failed for %s: %s", filename, e)
            return ExtractionResult(success=False, error=f"PDF extraction failed: {e}")

    def _extract_sync(self, data: bytes) -> ExtractionResult:
        from pdfminer.high_level import extract_text
        from pdfminer.pdfdocument import PDFDocument
        from pdfminer.pdfpage import PDFPage
        from pdfminer.pdfparser import PDFParser

        document = PDFDocument(PDFParser(io.BytesIO(data)))
        page_count = sum(1 for _ in PDFPage.create_pages(document))
        text = extract_text(io.BytesIO(data))
        return _text_result(text, page_count=page_count, author=self._author(document))

    @staticmethod
    def _author(document) -> Optional[str]:
        from pdfminer.pdftypes import resolve1
        from pdfminer.utils import decode_text

        for info in document.info:
            value = resolve1(info.get("Author"))
            if isinstance(value, bytes):
                value = decode_text(value)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None


class DocxExtractor:
    """Paragraph text and core properties of a Word document."""

    async def extract(
        self, data: bytes, filename: str, mime_type: str, category: FileCategory
    ) -> Optional[ExtractionResult]:
        if base_mime_type(mime_type) != DOCX_MIME:
            return None
        try:
            return await asyncio.to_thread(self._extract_sync, data)
        except Exception as e:
            logger.warning("DOCX extraction failed for %s: %s", filename, e)
            return ExtractionResult(success=False, error=f"DOCX extraction failed: {e}")

    def _extract_sync(self, data: bytes) -> ExtractionResult:
        import docx

        document = docx.Document(io.BytesIO(data))
        text = "\n".join(p.text for p in document.paragraphs)
        props = document.core_properties
        return _text_result(
            text,
            author=props.author or None,
            created_date=props.created.isoformat() if props.created else None,
            modified_date=props.modified.isoformat() if props.modified else None,
        )


def _dms_to_degrees(dms) -> float:
    degrees, minutes, seconds = (float(v) for v in dms)
    return degrees + minutes / 60.0 + seconds / 3600.0


def gps_from_exif(gps_ifd: Dict[int, Any]) -> Dict[str, Any]:
    """
    Decimal coordinates from an EXIF GPS IFD.

    Returns ``gps_latitude``/``gps_longitude``/``gps_altitude`` keys for
    whatever could be read; an empty dict when there is no position.
    """
    if not gps_ifd or _GPS_LAT not in gps_ifd or _GPS_LON not in gps_ifd:
        return {}
    try:
        lat = _dms_to_degrees(gps_ifd[_GPS_LAT])
        lon = _dms_to_degrees(gps_ifd[_GPS_LON])
    except (TypeError, ValueError, ZeroDivisionError):
        return {}
    if str(gps_ifd.get(_GPS_LAT_REF, "N")).upper().startswith("S"):
        lat = -lat
    if str(gps_ifd.get(_GPS_LON_REF, "E")).upper().startswith("W"):
        lon = -lon

    gps = {"gps_latitude": lat, "gps_longitude": lon}
    if _GPS_ALT in gps_ifd:
        try:
            altitude = float(gps_ifd[_GPS_ALT])
        except (TypeError, ValueError, ZeroDivisionError):
            return gps
        # AltitudeRef 1 means below sea level
        ref = gps_ifd.get(_GPS_ALT_REF, 0)
        if isinstance(ref, bytes):
            ref = ref[0] if ref else 0
        gps["gps_altitude"] = -altitude if ref == 1 else altitude
    return gps


def _exif_date(value) -> Optional[str]:
    if not value:
        return None
    try:
        return datetime.strptime(str(value).strip("\x00 "), _EXIF_DATE_FORMAT).isoformat()
    except ValueError:
        return None


class ImageExtractor:
    """Dimensions, camera and GPS metadata of a photo. Images carry no text."""

    async def extract(
        self, data: bytes, filename: str, mime_type: str, category: FileCategory
    ) -> Optional[ExtractionResult]:
        if category != FileCategory.IMAGE or not data:
            return None
        try:
            return await asyncio.to_thread(self._extract_sync, data)
        except Exception as e:
            logger.warning("Image metadata extraction failed for %s: %s", filename, e)
            return ExtractionResult(success=False, error=f"Image metadata extraction failed: {e}")

    def _extract_sync(self, data: bytes) -> ExtractionResult:
        from PIL import Image

        with Image.open(io.BytesIO(data)) as image:
            metadata = FileMetadata(width=image.width, height=image.height)
            exif = image.getexif()

            metadata.camera_make = str(exif[_TAG_MAKE]).strip("\x00 ") if _TAG_MAKE in exif else None
            metadata.camera_model = str(exif[_TAG_MODEL]).strip("\x00 ") if _TAG_MODEL in exif else None
            metadata.date_taken = (
                _exif_date(exif.get_ifd(_IFD_EXIF).get(_TAG_DATETIME_ORIGINAL))
                or _exif_date(exif.get(_TAG_DATETIME))
            )

            gps = gps_from_exif(exif.get_ifd(_IFD_GPS))

        for key, value in gps.items():
            setattr(metadata, key, value)
        if metadata.has_gps:
            metadata.location = GeoPoint(lat=metadata.gps_latitude, lon=metadata.gps_longitude)
        return ExtractionResult(success=True, text=None, metadata=metadata)


class DefaultExtractor:
    """Tries each extractor in order; the first non-None result wins."""

    def __init__(self, extractors: Optional[List[ContentExtractor]] = None):
        self._extractors = extractors if extractors is not None else [
            PlainTextExtractor(),
            PdfExtractor(),
            DocxExtractor(),
            ImageExtractor(),
        ]

    async def extract(
        self, data: bytes, filename: str, mime_type: str, category: FileCategory
    ) -> Optional[ExtractionResult]:
        for extractor in self._extractors:
            result = await extractor.extract(data, filename, mime_type, category)
            if result is not None:
                return result
        return None
