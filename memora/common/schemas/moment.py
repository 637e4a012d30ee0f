"""
Moment and File Content Schemas

Parent document: Moment (one life event/memory).
Child document: FileContentDocument (extracted content of one attached file).

The parent keeps lightweight ArtifactReference entries; the child points
back at its parent through ``moment_id``. The store does not enforce that
reference, so readers must handle a missing parent.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Literal
from pydantic import BaseModel, ConfigDict, Field, AliasChoices
from enum import Enum


# ============================================================================
# Enums
# ============================================================================

class FileCategory(str, Enum):
    """Coarse file taxonomy, derived from MIME type"""
    DOCUMENT = "document"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    ARCHIVE = "archive"
    CODE = "code"
    DATA = "data"
    OTHER = "other"


class ExtractionStatus(str, Enum):
    """Content extraction status of a file"""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    NOT_APPLICABLE = "not_applicable"

    def can_transition_to(self, new: "ExtractionStatus") -> bool:
        """Status only moves forward: pending may become anything, nothing returns to pending."""
        if new == ExtractionStatus.PENDING:
            return self == ExtractionStatus.PENDING
        return True


ArtifactKind = Literal["photo", "document", "audio", "video", "file", "link"]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# ============================================================================
# Sub-models
# ============================================================================

class Geo(BaseModel):
    """Where a moment happened"""
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None


class GeoPoint(BaseModel):
    lat: float
    lon: float


class FileMetadata(BaseModel):
    """Extraction-specific metadata. Unknown keys are kept."""
    model_config = ConfigDict(extra="allow")

    # Document
    page_count: Optional[int] = None
    word_count: Optional[int] = None
    author: Optional[str] = None
    created_date: Optional[str] = None
    modified_date: Optional[str] = None

    # Image
    width: Optional[int] = None
    height: Optional[int] = None
    ocr_text: Optional[str] = None
    detected_objects: List[str] = Field(default_factory=list)

    # EXIF / location
    camera_make: Optional[str] = None
    camera_model: Optional[str] = None
    date_taken: Optional[str] = None
    gps_latitude: Optional[float] = None
    gps_longitude: Optional[float] = None
    gps_altitude: Optional[float] = None
    location: Optional[GeoPoint] = None

    # Audio / video
    duration_seconds: Optional[float] = None
    transcript: Optional[str] = None

    @property
    def has_gps(self) -> bool:
        return self.gps_latitude is not None and self.gps_longitude is not None


class ArtifactReference(BaseModel):
    """Lightweight pointer to an attached file, stored inline on a Moment"""
    model_config = ConfigDict(populate_by_name=True)

    artifact_id: Optional[str] = None
    kind: ArtifactKind = "file"
    name: Optional[str] = None
    mime: Optional[str] = None
    size: Optional[int] = None
    gcs_path: str
    thumb_path: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("thumb_path", "thumb")
    )

    # Quick metadata
    has_content: bool = False
    content_language: Optional[str] = None
    page_count: Optional[int] = None
    duration_seconds: Optional[float] = None


# ============================================================================
# Documents
# ============================================================================

class Moment(BaseModel):
    """
    Parent document: a life event.

    Lifecycle: created on ingestion, updated when a file is attached,
    never deleted by this package.
    """
    moment_id: str
    user_id: str
    timestamp: str = Field(default_factory=utc_now_iso)
    type: str = "note"
    language: Optional[str] = None

    title: Optional[str] = None
    text: Optional[str] = None
    text_en: Optional[str] = None

    entities: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    geo: Optional[Geo] = None

    vector: Optional[List[float]] = None

    artifacts: List[ArtifactReference] = Field(default_factory=list)
    has_files: bool = False
    file_count: int = 0
    total_file_size: int = 0

    def attach(self, artifact: ArtifactReference, metadata: Optional[FileMetadata] = None) -> None:
        """Append an artifact and update aggregates.

        Geo is taken from the first attachment carrying GPS when the moment
        has no coordinates yet.
        """
        self.artifacts.append(artifact)
        self.has_files = True
        self.file_count += 1
        self.total_file_size += artifact.size or 0

        if metadata is not None and metadata.has_gps:
            if self.geo is None:
                self.geo = Geo(lat=metadata.gps_latitude, lon=metadata.gps_longitude)
            elif self.geo.lat is None or self.geo.lon is None:
                self.geo.lat = metadata.gps_latitude
                self.geo.lon = metadata.gps_longitude


class FileContentDocument(BaseModel):
    """
    Child document: searchable extracted content for one file.

    ``moment_id`` references the owning Moment by convention only.
    """
    content_id: str
    artifact_id: str
    moment_id: str
    user_id: str

    file_name: str
    description: Optional[str] = None
    file_type: str = "other"
    file_category: FileCategory = FileCategory.OTHER
    mime_type: str = "application/octet-stream"
    file_size: int = 0

    gcs_path: str
    thumb_path: Optional[str] = None

    extracted_text: Optional[str] = None
    extracted_text_en: Optional[str] = None

    metadata: FileMetadata = Field(default_factory=FileMetadata)

    content_vector: Optional[List[float]] = None

    extraction_status: ExtractionStatus = ExtractionStatus.PENDING
    extraction_timestamp: Optional[str] = None
    extraction_error: Optional[str] = None

    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)

    def set_status(self, status: ExtractionStatus, error: Optional[str] = None) -> None:
        """Move extraction status forward; backward moves raise ValueError."""
        if not self.extraction_status.can_transition_to(status):
            raise ValueError(
                f"Illegal extraction status transition: {self.extraction_status.value} -> {status.value}"
            )
        self.extraction_status = status
        self.extraction_error = error
        now = utc_now_iso()
        self.extraction_timestamp = now
        self.updated_at = now

    def to_file_content(self) -> Dict[str, Any]:
        """Payload handed to answer composition when a file is the best match."""
        return {
            "file_name": self.file_name,
            "extracted_text": self.extracted_text,
            "metadata": self.metadata.model_dump(exclude_none=True),
            "created_at": self.created_at,
            "mime_type": self.mime_type,
            "gcs_path": self.gcs_path,
        }
