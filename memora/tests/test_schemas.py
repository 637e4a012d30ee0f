"""
Tests for Moment / FileContentDocument schemas and index mappings
"""

import pytest
from pydantic import ValidationError

from memora.common.schemas import (
    ArtifactReference,
    ExtractionStatus,
    FileContentDocument,
    FileMetadata,
    Geo,
    Moment,
    moment_mapping,
    file_content_mapping,
)


def make_file(**overrides):
    data = {
        "content_id": "c1",
        "artifact_id": "a1",
        "moment_id": "m1",
        "user_id": "u1",
        "file_name": "license.pdf",
        "gcs_path": "gs://bucket/u1/license.pdf",
    }
    data.update(overrides)
    return FileContentDocument(**data)


class TestArtifactReference:
    def test_thumb_alias(self):
        artifact = ArtifactReference.model_validate({"gcs_path": "gs://b/a.jpg", "thumb": "gs://b/t.jpg"})
        assert artifact.thumb_path == "gs://b/t.jpg"

    def test_thumb_path_name(self):
        artifact = ArtifactReference(gcs_path="gs://b/a.jpg", thumb_path="gs://b/t.jpg")
        assert artifact.model_dump()["thumb_path"] == "gs://b/t.jpg"

    def test_gcs_path_required(self):
        with pytest.raises(ValidationError):
            ArtifactReference(kind="photo")

    def test_kind_is_restricted(self):
        with pytest.raises(ValidationError):
            ArtifactReference(gcs_path="gs://b/a", kind="spreadsheet")


class TestExtractionStatus:
    def test_pending_moves_anywhere(self):
        for status in ExtractionStatus:
            assert ExtractionStatus.PENDING.can_transition_to(status)

    def test_no_return_to_pending(self):
        assert not ExtractionStatus.SUCCESS.can_transition_to(ExtractionStatus.PENDING)
        assert not ExtractionStatus.FAILED.can_transition_to(ExtractionStatus.PENDING)

    def test_set_status_stamps_times(self):
        doc = make_file()
        doc.set_status(ExtractionStatus.FAILED, "corrupt pdf")

        assert doc.extraction_status == ExtractionStatus.FAILED
        assert doc.extraction_error == "corrupt pdf"
        assert doc.extraction_timestamp == doc.updated_at

    def test_set_status_backwards_raises(self):
        doc = make_file()
        doc.set_status(ExtractionStatus.SUCCESS)

        with pytest.raises(ValueError, match="success -> pending"):
            doc.set_status(ExtractionStatus.PENDING)


class TestMomentAttach:
    def test_aggregates(self):
        moment = Moment(moment_id="m1", user_id="u1")
        moment.attach(ArtifactReference(gcs_path="gs://b/1", size=100))
        moment.attach(ArtifactReference(gcs_path="gs://b/2", size=None))

        assert moment.has_files is True
        assert moment.file_count == 2
        assert moment.total_file_size == 100
        assert len(moment.artifacts) == 2

    def test_geo_from_gps_when_missing(self):
        moment = Moment(moment_id="m1", user_id="u1")
        moment.attach(
            ArtifactReference(gcs_path="gs://b/1.jpg"),
            FileMetadata(gps_latitude=48.8584, gps_longitude=2.2945),
        )
        assert moment.geo.lat == 48.8584
        assert moment.geo.lon == 2.2945

    def test_geo_fills_coordinates_keeps_city(self):
        moment = Moment(moment_id="m1", user_id="u1", geo=Geo(city="Paris"))
        moment.attach(
            ArtifactReference(gcs_path="gs://b/1.jpg"),
            FileMetadata(gps_latitude=48.8584, gps_longitude=2.2945),
        )
        assert moment.geo.city == "Paris"
        assert moment.geo.lat == 48.8584

    def test_existing_coordinates_kept(self):
        moment = Moment(moment_id="m1", user_id="u1", geo=Geo(lat=1.0, lon=2.0))
        moment.attach(
            ArtifactReference(gcs_path="gs://b/1.jpg"),
            FileMetadata(gps_latitude=48.8584, gps_longitude=2.2945),
        )
        assert (moment.geo.lat, moment.geo.lon) == (1.0, 2.0)


class TestFileContentDocument:
    def test_defaults(self):
        doc = make_file()
        assert doc.extraction_status == ExtractionStatus.PENDING
        assert doc.created_at.endswith("Z")

    def test_to_file_content(self):
        doc = make_file(extracted_text="driver license renewed 2024", metadata=FileMetadata(page_count=1))
        content = doc.to_file_content()

        assert content["file_name"] == "license.pdf"
        assert content["extracted_text"] == "driver license renewed 2024"
        assert content["metadata"]["page_count"] == 1
        assert "content_vector" not in content

    def test_metadata_keeps_unknown_keys(self):
        metadata = FileMetadata.model_validate({"page_count": 2, "producer": "scanner"})
        assert metadata.model_dump()["producer"] == "scanner"


class TestMappings:
    def test_moment_mapping(self):
        props = moment_mapping(384)["mappings"]["properties"]
        assert props["vector"]["dims"] == 384
        assert props["artifacts"]["type"] == "nested"
        assert props["user_id"]["type"] == "keyword"

    def test_file_content_mapping(self):
        props = file_content_mapping()["mappings"]["properties"]
        assert props["content_vector"]["dims"] == 768
        assert props["extraction_status"]["type"] == "keyword"
