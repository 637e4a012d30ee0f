"""
Elasticsearch Index Mappings

Mappings for the two collections searched by the retriever:
- Moments: one index per month (``<prefix>-YYYY-MM``), read through ``<prefix>-*``
- FileContents: a single index

Vectors are nomic-embed-text-v1.5 (768 dimensions) unless configured otherwise.
"""

from typing import Any, Dict


def moment_mapping(dims: int = 768) -> Dict[str, Any]:
    """Mapping for the moments index. Artifacts are nested so inner_hits can cap them."""
    return {
        "mappings": {
            "properties": {
                "moment_id": {"type": "keyword"},
                "user_id": {"type": "keyword"},
                "timestamp": {"type": "date"},
                "type": {"type": "keyword"},
                "language": {"type": "keyword"},
                "title": {"type": "text"},
                "text": {"type": "text"},
                "text_en": {"type": "text", "analyzer": "english"},
                "entities": {"type": "keyword"},
                "tags": {"type": "keyword"},
                "geo": {
                    "properties": {
                        "city": {"type": "keyword"},
                        "state": {"type": "keyword"},
                        "country": {"type": "keyword"},
                        "lat": {"type": "float"},
                        "lon": {"type": "float"},
                    }
                },
                "vector": {"type": "dense_vector", "dims": dims, "index": True, "similarity": "cosine"},
                "artifacts": {
                    "type": "nested",
                    "properties": {
                        "artifact_id": {"type": "keyword"},
                        "kind": {"type": "keyword"},
                        "name": {"type": "keyword"},
                        "mime": {"type": "keyword"},
                        "size": {"type": "long"},
                        "gcs_path": {"type": "keyword"},
                        "thumb_path": {"type": "keyword"},
                        "has_content": {"type": "boolean"},
                        "content_language": {"type": "keyword"},
                        "page_count": {"type": "integer"},
                        "duration_seconds": {"type": "float"},
                    },
                },
                "has_files": {"type": "boolean"},
                "file_count": {"type": "integer"},
                "total_file_size": {"type": "long"},
            }
        }
    }


def file_content_mapping(dims: int = 768) -> Dict[str, Any]:
    """Mapping for the file-contents index."""
    return {
        "settings": {
            "number_of_shards": 1,
            "number_of_replicas": 1,
            "analysis": {
                "analyzer": {
                    "content_analyzer": {"type": "standard", "stopwords": "_english_"},
                }
            },
        },
        "mappings": {
            "properties": {
                "content_id": {"type": "keyword"},
                "artifact_id": {"type": "keyword"},
                "moment_id": {"type": "keyword"},
                "user_id": {"type": "keyword"},
                "file_name": {"type": "text", "fields": {"keyword": {"type": "keyword"}}},
                "description": {"type": "text"},
                "file_type": {"type": "keyword"},
                "file_category": {"type": "keyword"},
                "mime_type": {"type": "keyword"},
                "file_size": {"type": "long"},
                "gcs_path": {"type": "keyword"},
                "thumb_path": {"type": "keyword"},
                "extracted_text": {"type": "text", "analyzer": "content_analyzer"},
                "extracted_text_en": {"type": "text", "analyzer": "english"},
                "metadata": {
                    "type": "object",
                    "properties": {
                        "page_count": {"type": "integer"},
                        "word_count": {"type": "integer"},
                        "author": {"type": "keyword"},
                        "created_date": {"type": "date"},
                        "modified_date": {"type": "date"},
                        "width": {"type": "integer"},
                        "height": {"type": "integer"},
                        "duration_seconds": {"type": "float"},
                        "transcript": {"type": "text"},
                        "ocr_text": {"type": "text"},
                        "detected_objects": {"type": "keyword"},
                        "camera_make": {"type": "keyword"},
                        "camera_model": {"type": "keyword"},
                        "date_taken": {"type": "date"},
                        "gps_latitude": {"type": "float"},
                        "gps_longitude": {"type": "float"},
                        "gps_altitude": {"type": "float"},
                        "location": {"type": "geo_point"},
                    },
                },
                "content_vector": {"type": "dense_vector", "dims": dims, "index": True, "similarity": "cosine"},
                "extraction_status": {"type": "keyword"},
                "extraction_timestamp": {"type": "date"},
                "extraction_error": {"type": "text"},
                "created_at": {"type": "date"},
                "updated_at": {"type": "date"},
            }
        },
    }
