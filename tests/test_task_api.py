"""Tests for the task API endpoints."""

from __future__ import annotations

from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from todo_api.config import TodoApiConfig
from todo_api.errors import StorageError
from todo_api.server.api import create_app


@pytest.fixture
def app(tmp_path: Path):
    """Create a test app with a temp data directory."""
    config = TodoApiConfig(data_dir=tmp_path / "data", enable_cors=False, rate_limit_max=10_000)
    return create_app(config=config)


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def _create(client: AsyncClient, text: str, **extra) -> dict:
    resp = await client.post("/api/tasks", json={"text": text, **extra})
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


@pytest.mark.anyio
class TestTaskCRUD:
    async def test_list_empty(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tasks")
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["data"] == []
        assert body["pagination"] == {
            "page": 1,
            "limit": 10,
            "total": 0,
            "totalPages": 0,
            "hasNext": False,
            "hasPrev": False,
        }

    async def test_create_and_get(self, client: AsyncClient) -> None:
        task = await _create(client, "  Learn FastAPI  ")
        assert task["text"] == "Learn FastAPI"
        assert task["completed"] is False
        assert task["createdAt"] == task["updatedAt"]

        resp = await client.get(f"/api/tasks/{task['id']}")
        assert resp.status_code == 200
        assert resp.json()["data"] == task

    async def test_create_requires_string_text(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tasks", json={"text": 42})
        assert resp.status_code == 400
        assert resp.json()["success"] is False

        resp = await client.post("/api/tasks", json={})
        assert resp.status_code == 400

    async def test_create_too_long_has_details(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tasks", json={"text": "x" * 101})
        assert resp.status_code == 400
        assert resp.json()["details"] == ["Text must not exceed 100 characters"]

    async def test_get_nonexistent(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tasks/nope")
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "message": "Task not found"}

    async def test_put_requires_both_fields(self, client: AsyncClient) -> None:
        task = await _create(client, "Old")
        resp = await client.put(f"/api/tasks/{task['id']}", json={"text": "New"})
        assert resp.status_code == 400

        resp = await client.put(f"/api/tasks/{task['id']}", json={"text": "New", "completed": True})
        assert resp.status_code == 200
        assert resp.json()["data"]["text"] == "New"
        assert resp.json()["data"]["completed"] is True

    async def test_put_unknown(self, client: AsyncClient) -> None:
        resp = await client.put("/api/tasks/ghost", json={"text": "New", "completed": False})
        assert resp.status_code == 404

    async def test_patch(self, client: AsyncClient) -> None:
        task = await _create(client, "Old")
        resp = await client.patch(f"/api/tasks/{task['id']}", json={"completed": "true"})
        assert resp.status_code == 200
        assert resp.json()["data"]["completed"] is True
        assert resp.json()["data"]["text"] == "Old"

    async def test_patch_requires_a_field(self, client: AsyncClient) -> None:
        task = await _create(client, "Old")
        resp = await client.patch(f"/api/tasks/{task['id']}", json={"color": "red"})
        assert resp.status_code == 400

    async def test_patch_unknown(self, client: AsyncClient) -> None:
        resp = await client.patch("/api/tasks/ghost", json={"text": "x"})
        assert resp.status_code == 404

    async def test_patch_duplicate_text(self, client: AsyncClient) -> None:
        await _create(client, "One")
        two = await _create(client, "Two")
        resp = await client.patch(f"/api/tasks/{two['id']}", json={"text": " ONE "})
        assert resp.status_code == 409

    async def test_delete(self, client: AsyncClient) -> None:
        task = await _create(client, "To delete")
        resp = await client.delete(f"/api/tasks/{task['id']}")
        assert resp.status_code == 200

        resp = await client.delete(f"/api/tasks/{task['id']}")
        assert resp.status_code == 404


@pytest.mark.anyio
class TestBulkAndStats:
    async def test_bulk_delete(self, client: AsyncClient) -> None:
        a = await _create(client, "A")
        await _create(client, "B")
        resp = await client.request("DELETE", "/api/tasks", json={"ids": [a["id"], "ghost"]})
        assert resp.status_code == 200
        assert resp.json()["data"] == {"deletedCount": 1, "requestedCount": 2}

    async def test_bulk_delete_requires_ids(self, client: AsyncClient) -> None:
        resp = await client.request("DELETE", "/api/tasks", json={"ids": []})
        assert resp.status_code == 400
        resp = await client.request("DELETE", "/api/tasks")
        assert resp.status_code == 400

    async def test_delete_completed_with_none(self, client: AsyncClient) -> None:
        await _create(client, "Open")
        resp = await client.delete("/api/tasks/completed")
        assert resp.status_code == 200
        assert resp.json()["data"] == {"deletedCount": 0}

    async def test_stats(self, client: AsyncClient) -> None:
        await _create(client, "A", completed=True)
        await _create(client, "B")
        await _create(client, "C")
        resp = await client.get("/api/tasks/stats")
        assert resp.status_code == 200
        assert resp.json()["data"] == {"total": 3, "completed": 1, "pending": 2, "completionRate": 33}


@pytest.mark.anyio
class TestQueryParameters:
    async def test_limit_capped_at_100(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tasks?limit=500")
        assert resp.json()["pagination"]["limit"] == 100

    async def test_bad_numbers_fall_back_to_defaults(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tasks?page=abc&limit=-3")
        pagination = resp.json()["pagination"]
        assert pagination["page"] == 1
        assert pagination["limit"] == 10

    async def test_unknown_sort_field(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tasks?sortBy=priority")
        assert resp.status_code == 400

    async def test_sort_by_text(self, client: AsyncClient) -> None:
        for text in ("banana", "Apple", "cherry"):
            await _create(client, text)
        resp = await client.get("/api/tasks?sortBy=text&sortOrder=asc")
        assert [t["text"] for t in resp.json()["data"]] == ["Apple", "banana", "cherry"]

    async def test_pagination_walk(self, client: AsyncClient) -> None:
        for i in range(7):
            await _create(client, f"Item {i}")
        ids: list[str] = []
        for page in (1, 2, 3):
            resp = await client.get(f"/api/tasks?page={page}&limit=3")
            ids.extend(t["id"] for t in resp.json()["data"])
        assert len(ids) == 7
        assert len(set(ids)) == 7

    async def test_search(self, client: AsyncClient) -> None:
        await _create(client, "Buy milk")
        await _create(client, "Walk dog")
        resp = await client.get("/api/tasks/search?q=MILK")
        assert resp.status_code == 200
        body = resp.json()
        assert body["searchTerm"] == "MILK"
        assert [t["text"] for t in body["data"]] == ["Buy milk"]

    async def test_search_without_completed_does_not_filter(self, client: AsyncClient) -> None:
        await _create(client, "Buy milk", completed=True)
        resp = await client.get("/api/tasks/search?q=milk")
        assert len(resp.json()["data"]) == 1

    async def test_search_requires_q(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tasks/search")
        assert resp.status_code == 400


@pytest.mark.anyio
class TestScenarios:
    async def test_toggle_then_filter(self, client: AsyncClient) -> None:
        milk = await _create(client, "Buy milk", completed=False)
        await _create(client, "URGENT: fix prod", completed=False)

        resp = await client.get("/api/tasks?completed=false")
        assert len(resp.json()["data"]) == 2

        resp = await client.patch(f"/api/tasks/{milk['id']}/toggle")
        assert resp.status_code == 200

        resp = await client.get("/api/tasks?completed=true")
        data = resp.json()["data"]
        assert len(data) == 1
        assert data[0]["text"] == "Buy milk"

    @pytest.mark.parametrize("variant", ["Buy milk", "BUY MILK", "  buy milk "])
    async def test_duplicate_post_conflicts(self, client: AsyncClient, variant: str) -> None:
        await _create(client, "Buy milk")
        resp = await client.post("/api/tasks", json={"text": variant})
        assert resp.status_code == 409
        stats = (await client.get("/api/tasks/stats")).json()["data"]
        assert stats["total"] == 1

    async def test_toggle_unknown(self, client: AsyncClient) -> None:
        resp = await client.patch("/api/tasks/ghost/toggle")
        assert resp.status_code == 404


@pytest.mark.anyio
class TestErrorMapping:
    async def test_storage_failure_is_500(self, app, client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
        def broken(*args, **kwargs):
            raise StorageError("Failed to read tasks: permission denied")

        monkeypatch.setattr(app.state.repository.store, "find_with_pagination", broken)
        resp = await client.get("/api/tasks")
        assert resp.status_code == 500
        body = resp.json()
        assert body["success"] is False
        assert body["message"] == "Internal server error"

    async def test_unknown_api_route(self, client: AsyncClient) -> None:
        resp = await client.get("/api/nothing-here")
        assert resp.status_code == 404
        assert resp.json()["message"] == "Route GET /api/nothing-here not found"

    async def test_route_docs(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tasks/docs")
        assert resp.status_code == 200
        assert "GET /api/tasks/search" in resp.json()["endpoints"]
