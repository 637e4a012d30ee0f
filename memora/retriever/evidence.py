"""
Evidence Resolver

Turns artifact references into short-lived signed links the client can open.
Each artifact is signed independently; one failure never removes another item.
"""

import asyncio
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel

from ..common.object_storage import ObjectStorage, clamp_ttl
from ..common.outcome import Ok, Degraded, Outcome

logger = logging.getLogger("memora.retriever.evidence")

MAX_EVIDENCE = 8


@dataclass
class EvidenceItem:
    """A signed, displayable piece of evidence"""
    kind: str
    name: str
    signed_url: str
    thumb_url: Optional[str] = None
    mime: Optional[str] = None
    highlight: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


def artifact_name(artifact: Dict[str, Any]) -> str:
    """Explicit name, else the last path segment, else ``"file"``."""
    if artifact.get("name"):
        return artifact["name"]
    path = artifact.get("gcs_path") or ""
    return path.rstrip("/").rsplit("/", 1)[-1] or "file"


def _as_dict(artifact: Any) -> Dict[str, Any]:
    if isinstance(artifact, BaseModel):
        return artifact.model_dump()
    return dict(artifact or {})


class EvidenceResolver:
    """Signs up to eight artifacts concurrently"""

    def __init__(self, storage: ObjectStorage, ttl_minutes: int = 10, max_items: int = MAX_EVIDENCE):
        self._storage = storage
        self._ttl = clamp_ttl(ttl_minutes)
        self._max_items = max_items

    async def resolve(
        self,
        artifacts: Sequence[Any],
        highlights: Optional[List[str]] = None,
    ) -> List[EvidenceItem]:
        """
        Sign the first eight artifacts.

        Args:
            artifacts: Artifact references (dicts or ArtifactReference)
            highlights: Retrieval highlights; the first is attached to document items

        Returns:
            Evidence items in artifact order, without the ones that could not be signed
        """
        first_highlight = highlights[0] if highlights else None
        selected = [_as_dict(a) for a in list(artifacts or [])[: self._max_items]]
        if not selected:
            return []

        results = await asyncio.gather(*(self._resolve_one(a, first_highlight) for a in selected))
        return [item for item in results if item is not None]

    async def _resolve_one(self, artifact: Dict[str, Any], highlight: Optional[str]) -> Optional[EvidenceItem]:
        path = artifact.get("gcs_path")
        name = artifact_name(artifact)
        if not path:
            logger.warning("Skipping evidence %s: no storage path", name)
            return None

        try:
            signed_url = await self._storage.sign_read(path, self._ttl)
        except Exception as e:
            logger.warning("Dropping evidence %s: %s", name, e)
            return None

        thumb = await self._sign_thumbnail(artifact.get("thumb_path") or artifact.get("thumb"))
        kind = artifact.get("kind") or "file"

        return EvidenceItem(
            kind=kind,
            name=name,
            signed_url=signed_url,
            thumb_url=thumb.value,
            mime=artifact.get("mime"),
            highlight=highlight if kind == "document" else None,
        )

    async def _sign_thumbnail(self, path: Optional[str]) -> Outcome:
        if not path:
            return Ok(None)
        try:
            return Ok(await self._storage.sign_read(path, self._ttl))
        except Exception as e:
            logger.warning("Thumbnail unavailable for %s: %s", path, e)
            return Degraded(None, f"thumbnail signing failed: {e}")
