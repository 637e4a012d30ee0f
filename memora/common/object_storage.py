"""
Object Storage

Issues time-limited V4 signed read URLs for files kept in Google Cloud Storage.
Paths are either ``gs://bucket/key`` or a bare key in the configured bucket.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Optional, Tuple

from google.auth.exceptions import DefaultCredentialsError
from google.cloud import storage as gcs

from .errors import SigningError

logger = logging.getLogger("memora.common.object_storage")

MIN_TTL_MINUTES = 10
MAX_TTL_MINUTES = 60


def split_gcs_path(path: str, default_bucket: str = "") -> Tuple[str, str]:
    """Split ``gs://bucket/a/b`` into ``("bucket", "a/b")``."""
    if path.startswith("gs://"):
        bucket, _, key = path[len("gs://"):].partition("/")
        return bucket or default_bucket, key
    return default_bucket, path.lstrip("/")


def clamp_ttl(minutes: int) -> int:
    return max(MIN_TTL_MINUTES, min(MAX_TTL_MINUTES, int(minutes)))


class ObjectStorage:
    """
    Signs read URLs. Signing is stateless, so one instance serves all requests.

    The GCS client is created on the first signature, so a server without
    credentials still starts and reports missing credentials per request.
    """

    def __init__(self, client: Optional[gcs.Client] = None, bucket: str = "", project_id: str = ""):
        self._client = client
        self._bucket = bucket
        self._project_id = project_id

    @classmethod
    def from_config(cls, storage_config) -> "ObjectStorage":
        return cls(bucket=storage_config.bucket, project_id=storage_config.project_id)

    def _get_client(self, path: str) -> gcs.Client:
        if self._client is None:
            try:
                self._client = gcs.Client(project=self._project_id or None)
            except DefaultCredentialsError as e:
                logger.warning("No Google Cloud credentials for signing: %s", e)
                raise SigningError(path, f"No storage credentials to sign {path}: {e}") from e
        return self._client

    async def sign_read(self, path: str, ttl_minutes: int = MIN_TTL_MINUTES) -> str:
        """Return a signed GET URL valid for ``ttl_minutes`` (clamped to 10-60)."""
        bucket_name, key = split_gcs_path(path, self._bucket)
        if not bucket_name or not key:
            raise SigningError(path, f"Cannot resolve bucket/key for {path!r}")

        blob = self._get_client(path).bucket(bucket_name).blob(key)
        try:
            return await asyncio.to_thread(
                blob.generate_signed_url,
                version="v4",
                expiration=timedelta(minutes=clamp_ttl(ttl_minutes)),
                method="GET",
            )
        except Exception as e:
            raise SigningError(path, f"Failed to sign {path}: {e}") from e
