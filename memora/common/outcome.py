"""
Outcome Types

Best-effort steps (planning, embedding, parent resolution, file search,
thumbnail signing) never raise. They return either ``Ok(value)`` or
``Degraded(value, reason)`` where ``value`` is the fallback the pipeline
continues with.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Step succeeded"""
    value: T

    @property
    def is_degraded(self) -> bool:
        return False

    @property
    def reason(self) -> None:
        return None


@dataclass(frozen=True)
class Degraded(Generic[T]):
    """Step failed and fell back to a default value"""
    value: T
    reason: str

    @property
    def is_degraded(self) -> bool:
        return True


Outcome = Union[Ok[T], Degraded[T]]
