"""File-based task store with single-writer locking.

Stores the whole collection as one JSON array (``tasks.json``) inside the
data directory.  Every operation reads the full file, works on it in memory
and rewrites it on change.  Mutations go through :meth:`TaskStore.transaction`,
which holds a thread lock and an exclusive file lock for the whole
read-modify-write cycle so concurrent writers cannot lose updates.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping, Optional

from loguru import logger

from ..constants import LOCK_FILENAME, STORE_FILENAME
from ..io_utils import FileLock, _ensure_json_list, _load_json_list, _save_json_list
from .model import Task
from .query import QueryOptions, TaskPage, run_query


def _completion_rate(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    # Half-up rounding; the builtin round() would send 12.5 to 12.
    return int(completed * 100 / total + 0.5)


# ---------------------------------------------------------------------------
# TaskStore
# ---------------------------------------------------------------------------

class TaskStore:
    """File-backed store for :class:`Task` objects.

    Parameters
    ----------
    data_dir:
        Directory holding ``tasks.json``; created on first use.
    """

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = Path(data_dir)
        self._store_path = self._data_dir / STORE_FILENAME
        self._lock = FileLock(self._data_dir / LOCK_FILENAME)
        self._thread_lock = threading.RLock()
        self._initialized = False

    @property
    def path(self) -> Path:
        return self._store_path

    # -- internal helpers ---------------------------------------------------

    def _init(self) -> None:
        if self._initialized:
            return
        _ensure_json_list(self._store_path)
        self._initialized = True
        logger.debug("Task storage ready at {}", self._store_path)

    def _load(self) -> list[Task]:
        self._init()
        return [Task.from_dict(d) for d in _load_json_list(self._store_path) if isinstance(d, dict)]

    def _save(self, tasks: list[Task]) -> None:
        self._init()
        _save_json_list(self._store_path, [t.to_dict() for t in tasks])

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self._thread_lock:
            with self._lock:
                yield

    # -- transactions -------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator["_TaskTx"]:
        """Acquire the locks, load tasks, yield a transaction, and save on exit.

        Nothing is written if the block raises or makes no changes::

            with store.transaction() as tx:
                task = tx.get(task_id)
                task.toggle()
                tx.replace(task)
        """
        with self._locked():
            tx = _TaskTx(self._load())
            yield tx
            if tx.dirty:
                self._save(tx.tasks)

    # -- whole-collection access -------------------------------------------

    def read_all(self) -> list[Task]:
        with self._locked():
            return self._load()

    def write_all(self, tasks: Iterable[Task]) -> None:
        with self._locked():
            self._save(list(tasks))

    # -- single-record operations ------------------------------------------

    def find_by_id(self, task_id: str) -> Optional[Task]:
        for t in self.read_all():
            if t.id == task_id:
                return t
        return None

    def create(self, task: Task) -> Task:
        """Append *task*; the caller has already validated and de-duplicated it."""
        with self.transaction() as tx:
            tx.add(task)
        return task

    def update_by_id(self, task_id: str, updates: Mapping[str, Any]) -> Optional[Task]:
        """Merge *updates* into the stored task; ``None`` if the id is unknown."""
        with self.transaction() as tx:
            task = tx.get(task_id)
            if task is None:
                return None
            merged = task.to_dict()
            merged.update(updates)
            merged["id"] = task.id
            updated = Task.from_dict(merged)
            tx.replace(updated)
            return updated

    def delete_by_id(self, task_id: str) -> bool:
        with self.transaction() as tx:
            return tx.remove(task_id)

    def delete_many(self, task_ids: Iterable[str]) -> int:
        with self.transaction() as tx:
            return tx.remove_many(task_ids)

    # -- queries ------------------------------------------------------------

    def find_with_pagination(self, options: Optional[QueryOptions] = None) -> TaskPage:
        return run_query(self.read_all(), options or QueryOptions())

    def get_stats(self) -> dict[str, int]:
        tasks = self.read_all()
        total = len(tasks)
        completed = sum(1 for t in tasks if t.completed)
        return {
            "total": total,
            "completed": completed,
            "pending": total - completed,
            "completionRate": _completion_rate(completed, total),
        }


class _TaskTx:
    """In-memory transaction over the task list.

    Mutations mark the transaction dirty; :meth:`TaskStore.transaction`
    flushes dirty transactions back to disk when the block exits.
    """

    def __init__(self, tasks: list[Task]) -> None:
        self.tasks = tasks
        self.dirty = False
        self._index: dict[str, int] = {t.id: i for i, t in enumerate(tasks)}

    def _reindex(self) -> None:
        self._index = {t.id: i for i, t in enumerate(self.tasks)}

    # -- lookups ------------------------------------------------------------

    def get(self, task_id: str) -> Optional[Task]:
        idx = self._index.get(task_id)
        return self.tasks[idx] if idx is not None else None

    def list_all(self) -> list[Task]:
        return list(self.tasks)

    # -- mutations ----------------------------------------------------------

    def add(self, task: Task) -> Task:
        if task.id in self._index:
            raise ValueError(f"Task {task.id} already exists")
        self._index[task.id] = len(self.tasks)
        self.tasks.append(task)
        self.dirty = True
        return task

    def replace(self, task: Task) -> bool:
        idx = self._index.get(task.id)
        if idx is None:
            return False
        self.tasks[idx] = task
        self.dirty = True
        return True

    def remove(self, task_id: str) -> bool:
        idx = self._index.pop(task_id, None)
        if idx is None:
            return False
        self.tasks.pop(idx)
        self._reindex()
        self.dirty = True
        return True

    def remove_many(self, task_ids: Iterable[str]) -> int:
        doomed = set(task_ids)
        before = len(self.tasks)
        self.tasks = [t for t in self.tasks if t.id not in doomed]
        removed = before - len(self.tasks)
        if removed:
            self._reindex()
            self.dirty = True
        return removed
