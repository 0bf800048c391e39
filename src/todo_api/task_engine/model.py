"""Task entity for the todo store.

Defines the task record, its validation rules and mutation helpers, the
explicit partial-update structure used by PATCH/PUT, and the enumerated
sort keys understood by the query engine.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Union

from ..constants import TEXT_MAX_LENGTH
from ..errors import ValidationError
from ..utils import _next_iso, _now_iso, _parse_iso


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "SortOrder":
        if raw is None or raw == "":
            return cls.DESC
        try:
            return cls(str(raw).lower())
        except ValueError:
            raise ValidationError(
                "Invalid sortOrder",
                [f"'sortOrder' must be one of {[e.value for e in cls]}, got '{raw}'"],
            ) from None


class SortKey(str, Enum):
    """Fields a task list can be ordered by."""

    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"
    TEXT = "text"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "SortKey":
        if raw is None or raw == "":
            return cls.CREATED_AT
        try:
            return cls(str(raw))
        except ValueError:
            raise ValidationError(
                "Invalid sortBy",
                [f"'sortBy' must be one of {[e.value for e in cls]}, got '{raw}'"],
            ) from None

    def key_func(self) -> Callable[["Task"], Any]:
        """Typed sort key for this field; ties fall back to the task id."""
        if self is SortKey.TEXT:
            return lambda t: (t.text.lower(), t.id)
        attr = "created_at" if self is SortKey.CREATED_AT else "updated_at"
        return lambda t: (_timestamp_key(getattr(t, attr)), t.id)


def _timestamp_key(value: str) -> datetime:
    parsed = _parse_iso(value)
    return parsed if parsed is not None else datetime.min.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _generate_id() -> str:
    return str(uuid.uuid4())


@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass
class TaskPatch:
    """Fields a client may change on an existing task.

    ``None`` means "leave as is"; only ``text`` and ``completed`` exist, so
    unknown keys in a request body never reach the entity.
    """

    text: Optional[str] = None
    completed: Optional[bool] = None

    def is_empty(self) -> bool:
        return self.text is None and self.completed is None

    def as_changes(self) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        if self.text is not None:
            changes["text"] = self.text
        if self.completed is not None:
            changes["completed"] = self.completed
        return changes


# ---------------------------------------------------------------------------
# Task dataclass
# ---------------------------------------------------------------------------

@dataclass
class Task:
    """A single todo item.

    Timestamps are ISO-8601 strings in UTC. A task built without timestamps
    gets ``created_at == updated_at``.
    """

    id: str = field(default_factory=_generate_id)
    text: str = ""
    completed: bool = False
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            self.id = _generate_id()
        if self.completed is None:
            self.completed = False
        if not self.created_at:
            self.created_at = _now_iso()
        if not self.updated_at:
            self.updated_at = self.created_at

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> ValidationResult:
        """Check every rule and report all violations, not just the first."""
        errors: list[str] = []
        if not isinstance(self.text, str) or not self.text:
            errors.append("Text is required and must be a string")
        else:
            if len(self.text.strip()) > TEXT_MAX_LENGTH:
                errors.append(f"Text must not exceed {TEXT_MAX_LENGTH} characters")
            if not self.text.strip():
                errors.append("Text cannot be empty")
        if not isinstance(self.completed, bool):
            errors.append("Completed must be a boolean value")
        return ValidationResult(is_valid=not errors, errors=errors)

    def normalized_text(self) -> str:
        """Key used for duplicate detection."""
        return self.text.strip().lower() if isinstance(self.text, str) else ""

    # ------------------------------------------------------------------
    # Mutation helpers
    # ------------------------------------------------------------------

    def touch(self) -> None:
        """Bump ``updated_at``; the new value is always later than the old."""
        self.updated_at = _next_iso(self.updated_at)

    def update(self, partial: Union[TaskPatch, Mapping[str, Any]]) -> None:
        """Apply recognized fields from *partial*; other keys are ignored."""
        changes = partial.as_changes() if isinstance(partial, TaskPatch) else partial
        for key in ("text", "completed"):
            if key in changes:
                setattr(self, key, changes[key])
        self.touch()

    def mark_completed(self) -> None:
        self.completed = True
        self.touch()

    def mark_incomplete(self) -> None:
        self.completed = False
        self.touch()

    def toggle(self) -> None:
        if self.completed:
            self.mark_incomplete()
        else:
            self.mark_completed()

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Task":
        """Build a task from its stored (camelCase) shape.

        snake_case keys are accepted too so entity dicts can be fed back in.
        """
        created = data.get("createdAt", data.get("created_at")) or ""
        updated = data.get("updatedAt", data.get("updated_at")) or ""
        return cls(
            id=str(data.get("id") or ""),
            text=data.get("text", ""),
            completed=data.get("completed", False),
            created_at=str(created),
            updated_at=str(updated),
        )
