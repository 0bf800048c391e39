"""Error taxonomy shared by the repository and the HTTP layer.

Every error carries the HTTP status it maps to, so the edge can translate
failures without knowing which layer raised them.
"""

from __future__ import annotations

from typing import Any, Optional


class TodoApiError(Exception):
    """Base class for failures that already know their HTTP status."""

    status_code = 500

    def __init__(self, message: str, details: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = list(details) if details else None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": False, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(TodoApiError):
    """Bad, missing, or oversized input."""

    status_code = 400


class NotFoundError(TodoApiError):
    status_code = 404


class ConflictError(TodoApiError):
    """Another task already uses the same text."""

    status_code = 409


class StorageError(TodoApiError):
    """Reading or writing the task file failed."""

    status_code = 500


class UnexpectedError(TodoApiError):
    status_code = 500


class RateLimitError(TodoApiError):
    status_code = 429

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["retryAfter"] = self.retry_after
        return payload
