"""Task storage and business rules.

This package provides the task entity, the JSON file store with its query
engine, and the repository that the HTTP handlers and CLI call into.
"""

from .model import SortKey, SortOrder, Task, TaskPatch, ValidationResult
from .query import Pagination, QueryOptions, TaskPage
from .repository import TaskRepository
from .store import TaskStore

__all__ = [
    "Pagination",
    "QueryOptions",
    "SortKey",
    "SortOrder",
    "Task",
    "TaskPage",
    "TaskPatch",
    "TaskRepository",
    "TaskStore",
    "ValidationResult",
]
