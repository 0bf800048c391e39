"""Pydantic models for request bodies.

Fields are typed ``Any``; type checks and coercion happen in the
handlers so bad input gets the API's own 400 messages instead of a 422.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class CreateTaskRequest(BaseModel):
    text: Any = None
    completed: Any = None


class UpdateTaskRequest(BaseModel):
    text: Any = None
    completed: Any = None


class BulkDeleteRequest(BaseModel):
    ids: Optional[Any] = None
