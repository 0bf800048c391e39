from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from .constants import WINDOWS_LOCK_BYTES
from .errors import StorageError


class FileLock:
    """Exclusive cross-process lock held on a sibling ``.lock`` file.

    Not thread-safe on its own: callers serialize threads first (``TaskStore``
    holds an ``RLock`` around it). Re-entering inside that critical section
    only bumps a depth counter; ``flock`` is released when the outermost
    block exits.
    """

    def __init__(self, lock_path: Path):
        self.lock_path = lock_path
        self.handle: Optional[Any] = None
        self.lock_bytes = WINDOWS_LOCK_BYTES
        self._depth = 0

    def __enter__(self) -> "FileLock":
        if self._depth:
            self._depth += 1
            return self
        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            self.handle = open(self.lock_path, "w")
        except OSError as exc:
            raise StorageError(f"Failed to open lock file: {exc}") from exc
        try:
            import fcntl
            fcntl.flock(self.handle, fcntl.LOCK_EX)
        except ImportError:
            if os.name == "nt":
                import msvcrt
                self.handle.seek(0)
                self.handle.truncate(self.lock_bytes)
                self.handle.flush()
                msvcrt.locking(self.handle.fileno(), msvcrt.LK_LOCK, self.lock_bytes)
        self._depth = 1
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._depth > 1:
            self._depth -= 1
            return
        self._depth = 0
        if not self.handle:
            return
        try:
            import fcntl
            fcntl.flock(self.handle, fcntl.LOCK_UN)
        except ImportError:
            if os.name == "nt":
                import msvcrt
                self.handle.seek(0)
                msvcrt.locking(self.handle.fileno(), msvcrt.LK_UNLCK, self.lock_bytes)
        self.handle.close()
        self.handle = None


def _ensure_json_list(path: Path) -> None:
    """Create *path* (and its directory) holding an empty JSON array if absent."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if not path.exists():
            _atomic_write_json(path, [])
    except OSError as exc:
        raise StorageError(f"Failed to initialize task storage: {exc}") from exc


def _load_json_list(path: Path) -> list[Any]:
    """Read a JSON array document; a missing file reads as ``[]``."""
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        return []
    except OSError as exc:
        raise StorageError(f"Failed to read tasks: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise StorageError(f"Failed to read tasks: {path.name} is not valid JSON ({exc})") from exc
    if not isinstance(data, list):
        raise StorageError(f"Failed to read tasks: {path.name}: expected array, got {type(data).__name__}")
    return data


def _atomic_write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as handle:
        json.dump(data, handle, indent=2, ensure_ascii=False)
        handle.flush()
        os.fsync(handle.fileno())
    os.replace(tmp_path, path)


def _save_json_list(path: Path, items: list[Any]) -> None:
    try:
        _atomic_write_json(path, items)
    except OSError as exc:
        raise StorageError(f"Failed to write tasks: {exc}") from exc


def _load_data_with_error(
    path: Path,
    default: dict[str, Any],
) -> tuple[dict[str, Any], str | None]:
    """
    Load JSON/YAML and return (data, error_message).

    Parse and I/O failures are reported instead of raised so a broken config
    file does not stop the server from starting with defaults.
    """
    if not path.exists():
        return default, None
    try:
        with open(path, "r", encoding="utf-8") as handle:
            if path.suffix in {".yaml", ".yml"}:
                data = yaml.safe_load(handle)
            else:
                data = json.load(handle)
        if data is None:
            return default, None
        if not isinstance(data, dict):
            return default, f"{path.name}: expected object, got {type(data).__name__}"
        return data, None
    except OSError as exc:
        return default, f"{path.name}: {exc.__class__.__name__}: {exc}"
    except json.JSONDecodeError as exc:
        return default, f"{path.name}: JSONDecodeError: {exc}"
    except yaml.YAMLError as exc:
        return default, f"{path.name}: YAMLError: {exc}"
