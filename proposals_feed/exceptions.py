"""
Custom exceptions for the proposals feed engine.

Provides a small hierarchy of exceptions with HTTP-like error codes so the
presentation layer can map engine failures onto responses consistently.
Data-quality problems in indexed records are never raised; they are logged
and skipped where they occur.
"""
from typing import Any, Optional


class FeedEngineError(Exception):
    """Base exception for all feed engine errors."""

    def __init__(
        self,
        message: str,
        code: int = 500,
        retryable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.retryable = retryable

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "error_code": self.code,
            "error_message": self.message,
            "retryable": self.retryable,
        }


class InputValidationError(FeedEngineError):
    """400 Bad Request - Malformed identifier or argument."""

    def __init__(self, message: str = "Invalid request data"):
        super().__init__(message, code=400, retryable=False)


class NotFoundError(FeedEngineError):
    """404 Not Found - Referenced group, proposal or topic doesn't exist."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, code=404, retryable=False)


class GroupNotFoundError(NotFoundError):
    """Proposal group not found."""

    def __init__(self, group_id: str = ""):
        message = f"Proposal group '{group_id}' not found" if group_id else "Proposal group not found"
        super().__init__(message)


class PartialFetchFailure(FeedEngineError):
    """One linked item of a group failed to load.

    Never escapes the timeline assembler: the item is logged and dropped.
    """

    def __init__(self, item: Any = None, cause: Optional[BaseException] = None):
        self.item = item
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to load linked item {item!r}{detail}", code=502, retryable=True)
