"""Tests for io_utils module."""

from __future__ import annotations

from pathlib import Path

import pytest

from todo_api.errors import StorageError
from todo_api.io_utils import FileLock, _load_json_list, _save_json_list


class TestFileLock:
    def test_nested_entry_releases_on_outer_exit(self, tmp_path: Path) -> None:
        lock = FileLock(tmp_path / "state" / "tasks.lock")
        with lock:
            handle = lock.handle
            with lock:
                assert lock.handle is handle
            assert lock.handle is handle
        assert lock.handle is None
        assert (tmp_path / "state" / "tasks.lock").exists()

    def test_lock_can_be_taken_again(self, tmp_path: Path) -> None:
        lock = FileLock(tmp_path / "tasks.lock")
        with lock:
            pass
        with lock:
            assert lock.handle is not None
        assert lock.handle is None


class TestJsonList:
    def test_missing_file_reads_empty(self, tmp_path: Path) -> None:
        assert _load_json_list(tmp_path / "absent.json") == []

    def test_save_then_load(self, tmp_path: Path) -> None:
        path = tmp_path / "tasks.json"
        _save_json_list(path, [{"id": "1", "text": "Ünïcode"}])
        assert _load_json_list(path) == [{"id": "1", "text": "Ünïcode"}]
        assert not path.with_suffix(".json.tmp").exists()

    def test_object_document_is_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "tasks.json"
        path.write_text('{"tasks": []}', encoding="utf-8")
        with pytest.raises(StorageError, match="expected array"):
            _load_json_list(path)
