"""Tests for the JSON file store (task_engine/store.py)."""

from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest

from todo_api.errors import StorageError
from todo_api.task_engine.model import Task
from todo_api.task_engine.query import QueryOptions
from todo_api.task_engine.store import TaskStore


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def store(data_dir: Path) -> TaskStore:
    return TaskStore(data_dir)


class TestInitialization:
    def test_first_read_creates_empty_collection(self, store: TaskStore, data_dir: Path) -> None:
        assert store.read_all() == []
        assert json.loads((data_dir / "tasks.json").read_text()) == []

    def test_missing_file_reads_as_empty(self, store: TaskStore, data_dir: Path) -> None:
        store.read_all()
        (data_dir / "tasks.json").unlink()
        assert store.read_all() == []

    def test_corrupt_file_is_storage_error(self, store: TaskStore, data_dir: Path) -> None:
        data_dir.mkdir(parents=True)
        (data_dir / "tasks.json").write_text("{not json")
        with pytest.raises(StorageError):
            store.read_all()

    def test_non_array_document_is_storage_error(self, store: TaskStore, data_dir: Path) -> None:
        data_dir.mkdir(parents=True)
        (data_dir / "tasks.json").write_text('{"tasks": []}')
        with pytest.raises(StorageError, match="expected array"):
            store.read_all()


class TestCrud:
    def test_create_and_find(self, store: TaskStore) -> None:
        t = store.create(Task(text="First"))
        found = store.find_by_id(t.id)
        assert found is not None
        assert found.to_dict() == t.to_dict()
        assert store.find_by_id("nope") is None

    def test_persisted_as_json_array(self, store: TaskStore) -> None:
        t = store.create(Task(text="Persisted"))
        raw = json.loads(store.path.read_text())
        assert raw == [t.to_dict()]

    def test_write_all_replaces_collection(self, store: TaskStore) -> None:
        store.create(Task(text="Old"))
        store.write_all([Task(id="n1", text="New")])
        assert [t.id for t in store.read_all()] == ["n1"]

    def test_update_by_id_merges_fields(self, store: TaskStore) -> None:
        t = store.create(Task(text="Old"))
        updated = store.update_by_id(t.id, {"completed": True, "id": "other"})
        assert updated is not None
        assert updated.id == t.id
        assert updated.text == "Old"
        assert updated.completed is True
        assert store.find_by_id(t.id).completed is True

    def test_update_unknown_id(self, store: TaskStore) -> None:
        assert store.update_by_id("ghost", {"text": "x"}) is None

    def test_delete_by_id(self, store: TaskStore) -> None:
        t = store.create(Task(text="Doomed"))
        assert store.delete_by_id(t.id) is True
        assert store.delete_by_id(t.id) is False
        assert store.read_all() == []

    def test_delete_many_ignores_unknown_ids(self, store: TaskStore) -> None:
        a = store.create(Task(text="A"))
        b = store.create(Task(text="B"))
        store.create(Task(text="C"))
        assert store.delete_many([a.id, b.id, "ghost"]) == 2
        assert [t.text for t in store.read_all()] == ["C"]

    def test_failed_transaction_writes_nothing(self, store: TaskStore) -> None:
        store.create(Task(id="t1", text="Keep"))
        with pytest.raises(RuntimeError):
            with store.transaction() as tx:
                tx.add(Task(id="t2", text="Lost"))
                raise RuntimeError("abort")
        assert [t.id for t in store.read_all()] == ["t1"]

    def test_duplicate_id_raises(self, store: TaskStore) -> None:
        with store.transaction() as tx:
            tx.add(Task(id="t1", text="First"))
            with pytest.raises(ValueError, match="already exists"):
                tx.add(Task(id="t1", text="Duplicate"))


class TestQueriesAndStats:
    def test_find_with_pagination(self, store: TaskStore) -> None:
        for i in range(5):
            store.create(Task(text=f"Item {i}"))
        result = store.find_with_pagination(QueryOptions(page=2, limit=2))
        assert len(result.tasks) == 2
        assert result.pagination.total == 5
        assert result.pagination.total_pages == 3

    def test_stats_empty(self, store: TaskStore) -> None:
        assert store.get_stats() == {"total": 0, "completed": 0, "pending": 0, "completionRate": 0}

    def test_stats_identities(self, store: TaskStore) -> None:
        for i in range(8):
            store.create(Task(text=f"Item {i}", completed=i == 0))
        stats = store.get_stats()
        assert stats["total"] == stats["completed"] + stats["pending"]
        # 12.5 rounds half-up.
        assert stats["completionRate"] == 13

    def test_stats_two_thirds(self, store: TaskStore) -> None:
        for i in range(3):
            store.create(Task(text=f"Item {i}", completed=i < 2))
        assert store.get_stats()["completionRate"] == 67


class TestConcurrency:
    def test_parallel_writers_do_not_lose_updates(self, store: TaskStore) -> None:
        def worker(n: int) -> None:
            for i in range(5):
                store.create(Task(text=f"w{n}-{i}"))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for th in threads:
            th.start()
        for th in threads:
            th.join()
        assert len(store.read_all()) == 40

    def test_two_stores_share_the_file(self, data_dir: Path) -> None:
        first = TaskStore(data_dir)
        second = TaskStore(data_dir)
        first.create(Task(text="From first"))
        second.create(Task(text="From second"))
        assert sorted(t.text for t in first.read_all()) == ["From first", "From second"]
