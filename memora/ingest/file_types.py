"""
File Taxonomy

Maps uploads onto the coarse categories used for extraction and display:
MIME type -> FileCategory, file extension -> file type, and FileCategory ->
the artifact kind shown on a Moment.
"""

from typing import Optional

from ..common.schemas import FileCategory

MIME_CATEGORIES = {
    # Documents
    "application/pdf": FileCategory.DOCUMENT,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": FileCategory.DOCUMENT,
    "application/msword": FileCategory.DOCUMENT,
    "text/plain": FileCategory.DOCUMENT,
    "text/markdown": FileCategory.DOCUMENT,
    "application/rtf": FileCategory.DOCUMENT,

    # Images
    "image/jpeg": FileCategory.IMAGE,
    "image/png": FileCategory.IMAGE,
    "image/gif": FileCategory.IMAGE,
    "image/webp": FileCategory.IMAGE,
    "image/heic": FileCategory.IMAGE,
    "image/svg+xml": FileCategory.IMAGE,

    # Audio
    "audio/mpeg": FileCategory.AUDIO,
    "audio/mp3": FileCategory.AUDIO,
    "audio/wav": FileCategory.AUDIO,
    "audio/mp4": FileCategory.AUDIO,
    "audio/ogg": FileCategory.AUDIO,

    # Video
    "video/mp4": FileCategory.VIDEO,
    "video/quicktime": FileCategory.VIDEO,
    "video/x-msvideo": FileCategory.VIDEO,
    "video/webm": FileCategory.VIDEO,

    # Archives
    "application/zip": FileCategory.ARCHIVE,
    "application/x-rar-compressed": FileCategory.ARCHIVE,
    "application/x-tar": FileCategory.ARCHIVE,
    "application/gzip": FileCategory.ARCHIVE,

    # Code
    "text/x-python": FileCategory.CODE,
    "text/javascript": FileCategory.CODE,
    "application/javascript": FileCategory.CODE,
    "application/typescript": FileCategory.CODE,
    "text/x-java-source": FileCategory.CODE,
    "text/x-c": FileCategory.CODE,
    "text/x-c++src": FileCategory.CODE,
    "text/html": FileCategory.CODE,

    # Data
    "application/json": FileCategory.DATA,
    "text/csv": FileCategory.DATA,
    "application/xml": FileCategory.DATA,
}

FILE_TYPES = {
    "pdf", "docx", "doc", "txt", "rtf", "odt", "pages",
    "xlsx", "xls", "csv", "numbers",
    "pptx", "ppt", "key",
    "jpg", "jpeg", "png", "gif", "webp", "heic", "svg",
    "mp3", "wav", "m4a", "ogg", "flac",
    "mp4", "mov", "avi", "mkv", "webm",
    "zip", "rar", "tar", "gz",
    "js", "ts", "py", "java", "cpp",
    "json", "xml", "html", "md",
}

EXTRACTABLE_CATEGORIES = frozenset(
    {FileCategory.DOCUMENT, FileCategory.IMAGE, FileCategory.AUDIO, FileCategory.CODE}
)

_KIND_BY_CATEGORY = {
    FileCategory.IMAGE: "photo",
    FileCategory.DOCUMENT: "document",
    FileCategory.AUDIO: "audio",
    FileCategory.VIDEO: "video",
}


def base_mime_type(mime_type: Optional[str]) -> str:
    """``Text/Plain; charset=utf-8`` -> ``text/plain``"""
    return (mime_type or "").split(";", 1)[0].strip().lower()


def get_file_category(mime_type: Optional[str]) -> FileCategory:
    """Category for a MIME type; parameters such as ``; charset=utf-8`` are ignored."""
    return MIME_CATEGORIES.get(base_mime_type(mime_type), FileCategory.OTHER)


def get_file_type(filename: Optional[str]) -> Optional[str]:
    """Known file type from the extension, or None."""
    if not filename or "." not in filename:
        return None
    ext = filename.rsplit(".", 1)[-1].lower()
    return ext if ext in FILE_TYPES else None


def should_extract_content(category: FileCategory) -> bool:
    return category in EXTRACTABLE_CATEGORIES


def category_to_kind(category) -> str:
    """Artifact kind for a category (accepts the enum or its string value)."""
    try:
        category = FileCategory(category)
    except ValueError:
        return "file"
    return _KIND_BY_CATEGORY.get(category, "file")
