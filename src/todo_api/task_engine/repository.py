"""Task repository: business rules on top of :class:`TaskStore`.

This is the entry point for task manipulation.  It validates entities,
enforces unique task text, and tags every failure with an HTTP-aware error
type before it leaves the layer.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping, Optional, Union

from loguru import logger

from ..errors import ConflictError, TodoApiError, UnexpectedError, ValidationError
from .model import Task, TaskPatch
from .query import QueryOptions, TaskPage
from .store import TaskStore, _TaskTx

DUPLICATE_MESSAGE = "Task with this text already exists"


@contextmanager
def _failures(action: str) -> Iterator[None]:
    """Let tagged errors through; wrap anything else as ``UnexpectedError``."""
    try:
        yield
    except TodoApiError:
        raise
    except Exception as exc:
        logger.exception("Failed to {}", action)
        raise UnexpectedError(f"Failed to {action}: {exc}") from exc


def _check_valid(task: Task) -> None:
    result = task.validate()
    if not result.is_valid:
        raise ValidationError("Validation failed", result.errors)


def _check_unique(tx: _TaskTx, task: Task) -> None:
    # Linear scan over the whole collection; fine for a flat-file store.
    key = task.normalized_text()
    for existing in tx.list_all():
        if existing.id != task.id and existing.normalized_text() == key:
            raise ConflictError(DUPLICATE_MESSAGE)


class TaskRepository:
    """Manage the lifecycle of tasks.

    Parameters
    ----------
    store:
        Either a :class:`TaskStore` or the data directory to open one in.
    """

    def __init__(self, store: Union[TaskStore, Path]) -> None:
        self.store = store if isinstance(store, TaskStore) else TaskStore(Path(store))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_all_tasks(self, options: Optional[QueryOptions] = None) -> TaskPage:
        with _failures("get tasks"):
            return self.store.find_with_pagination(options)

    def search_tasks(self, term: str, options: Optional[QueryOptions] = None) -> TaskPage:
        if not isinstance(term, str) or not term.strip():
            raise ValidationError("Search term is required")
        with _failures("search tasks"):
            return self.store.find_with_pagination(replace(options or QueryOptions(), search=term.strip()))

    def get_task_by_id(self, task_id: str) -> Optional[Task]:
        if not task_id:
            raise ValidationError("Task ID is required")
        with _failures("get task"):
            return self.store.find_by_id(task_id)

    def get_task_stats(self) -> dict[str, int]:
        with _failures("get task statistics"):
            return self.store.get_stats()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_task(self, data: Mapping[str, Any]) -> Task:
        """Validate, de-duplicate and persist a new task."""
        with _failures("create task"):
            task = Task(
                text=data.get("text", ""),
                completed=data.get("completed", False),
            )
            _check_valid(task)
            with self.store.transaction() as tx:
                _check_unique(tx, task)
                tx.add(task)
            logger.info("Created task {}: {!r}", task.id, task.text)
            return task

    def update_task(self, task_id: str, updates: Union[TaskPatch, Mapping[str, Any]]) -> Optional[Task]:
        """Apply a partial update.  Returns the updated task, or None if unknown."""
        if not task_id:
            raise ValidationError("Task ID is required")
        changes = updates.as_changes() if isinstance(updates, TaskPatch) else dict(updates)
        with _failures("update task"):
            with self.store.transaction() as tx:
                current = tx.get(task_id)
                if current is None:
                    return None
                task = replace(current)
                task.update(changes)
                _check_valid(task)
                if "text" in changes:
                    _check_unique(tx, task)
                tx.replace(task)
            logger.info("Updated task {} ({})", task.id, ", ".join(sorted(k for k in changes if k in ("text", "completed"))))
            return task

    def toggle_task_completion(self, task_id: str) -> Optional[Task]:
        if not task_id:
            raise ValidationError("Task ID is required")
        with _failures("toggle task completion"):
            with self.store.transaction() as tx:
                current = tx.get(task_id)
                if current is None:
                    return None
                task = replace(current)
                task.toggle()
                tx.replace(task)
            logger.info("Toggled task {} -> completed={}", task.id, task.completed)
            return task

    def delete_task(self, task_id: str) -> bool:
        if not task_id:
            raise ValidationError("Task ID is required")
        with _failures("delete task"):
            deleted = self.store.delete_by_id(task_id)
        if deleted:
            logger.info("Deleted task {}", task_id)
        return deleted

    def delete_tasks(self, task_ids: Iterable[str]) -> dict[str, int]:
        ids = list(task_ids)
        if not ids:
            raise ValidationError("Task IDs array is required")
        with _failures("delete tasks"):
            deleted = self.store.delete_many(ids)
        logger.info("Deleted {} of {} requested tasks", deleted, len(ids))
        return {"deletedCount": deleted, "requestedCount": len(ids)}

    def delete_completed_tasks(self) -> dict[str, Any]:
        with _failures("delete completed tasks"):
            with self.store.transaction() as tx:
                completed_ids = [t.id for t in tx.list_all() if t.completed]
                deleted = tx.remove_many(completed_ids) if completed_ids else 0
        if not deleted:
            return {"deletedCount": 0, "message": "No completed tasks found"}
        logger.info("Deleted {} completed tasks", deleted)
        return {"deletedCount": deleted, "message": f"Deleted {deleted} completed tasks"}
