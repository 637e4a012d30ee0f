"""
Error types raised by the recall pipeline.

Only failures that must stop a request are raised. Best-effort steps
report through ``memora.common.outcome`` instead.
"""


class MemoraError(Exception):
    """Base class for all memora errors"""


class RetrievalError(MemoraError):
    """The moments search failed, so no candidate can be produced."""


class RetrievalUnavailableError(MemoraError):
    """The question could not be answered because composition could not run."""


class SigningError(MemoraError):
    """A signed URL could not be issued for a stored object."""

    def __init__(self, path: str, message: str = ""):
        self.path = path
        super().__init__(message or f"Failed to sign {path}")


class UpdateConflictError(MemoraError):
    """A document changed between read and write."""
