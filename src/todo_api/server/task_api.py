"""Task API endpoints.

This module provides a FastAPI router with CRUD, bulk delete, search and
statistics endpoints.  It is mounted under ``/api/tasks`` by the main
``create_app`` factory.  Handlers only parse input and shape output; the
:class:`TaskRepository` owns every business rule and raises tagged errors
that the app-level exception handler turns into JSON responses.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from fastapi import APIRouter, Query

from ..constants import DEFAULT_LIMIT, DEFAULT_PAGE, MAX_LIMIT, TEXT_MAX_LENGTH
from ..errors import NotFoundError, ValidationError
from ..task_engine.model import SortKey, SortOrder, TaskPatch
from ..task_engine.query import QueryOptions, TaskPage
from ..task_engine.repository import TaskRepository
from .models import BulkDeleteRequest, CreateTaskRequest, UpdateTaskRequest


# ---------------------------------------------------------------------------
# Input parsing
# ---------------------------------------------------------------------------

def _parse_int(raw: Optional[str], default: int) -> int:
    if raw is None:
        return default
    try:
        return int(str(raw).strip())
    except ValueError:
        return default


def parse_completed(raw: Any) -> Optional[bool]:
    """Tri-state flag: None -> no filter, ``true``/"true" -> True, anything else -> False."""
    if raw is None:
        return None
    if isinstance(raw, bool):
        return raw
    return str(raw) == "true"


def build_query_options(
    page: Optional[str],
    limit: Optional[str],
    search: Optional[str],
    completed: Optional[str],
    sort_by: Optional[str],
    sort_order: Optional[str],
) -> QueryOptions:
    parsed_page = _parse_int(page, DEFAULT_PAGE)
    parsed_limit = min(_parse_int(limit, DEFAULT_LIMIT), MAX_LIMIT)
    return QueryOptions(
        page=parsed_page if parsed_page >= 1 else DEFAULT_PAGE,
        limit=parsed_limit if parsed_limit >= 1 else DEFAULT_LIMIT,
        search=(search or "").strip(),
        completed=parse_completed(completed),
        sort_by=SortKey.parse(sort_by),
        sort_order=SortOrder.parse(sort_order),
    )


def _require_text(raw: Any) -> str:
    if not raw or not isinstance(raw, str):
        raise ValidationError("Task text is required and must be a string")
    return raw.strip()


def _envelope(message: str, data: Any = None, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        payload["data"] = data
    payload.update(extra)
    return payload


def _page_envelope(message: str, page: TaskPage, **extra: Any) -> dict[str, Any]:
    return _envelope(
        message,
        [t.to_dict() for t in page.tasks],
        pagination=page.pagination.to_dict() if page.pagination else None,
        **extra,
    )


def _not_found() -> NotFoundError:
    return NotFoundError("Task not found")


# ---------------------------------------------------------------------------
# Route documentation
# ---------------------------------------------------------------------------

_LIST_PARAMS = {
    "page": f"Page number (default: {DEFAULT_PAGE})",
    "limit": f"Items per page (default: {DEFAULT_LIMIT}, max: {MAX_LIMIT})",
    "completed": "Filter by completion status (true/false)",
    "sortBy": "Sort field (createdAt, updatedAt, text)",
    "sortOrder": "Sort order (asc, desc)",
}

ROUTE_DOCS: dict[str, Any] = {
    "GET /api/tasks": {
        "description": "Get all tasks with pagination and filtering",
        "queryParams": {**_LIST_PARAMS, "search": "Search term for task text"},
    },
    "GET /api/tasks/:id": {"description": "Get task by ID", "params": {"id": "Task ID (UUID)"}},
    "POST /api/tasks": {
        "description": "Create a new task",
        "body": {
            "text": f"Task text (required, string, max {TEXT_MAX_LENGTH} chars)",
            "completed": "Completion status (optional, boolean, default: false)",
        },
    },
    "PUT /api/tasks/:id": {
        "description": "Update task (full update)",
        "body": {
            "text": f"Task text (required, string, max {TEXT_MAX_LENGTH} chars)",
            "completed": "Completion status (required, boolean)",
        },
    },
    "PATCH /api/tasks/:id": {
        "description": "Partially update task",
        "body": {
            "text": f"Task text (optional, string, max {TEXT_MAX_LENGTH} chars)",
            "completed": "Completion status (optional, boolean)",
        },
    },
    "PATCH /api/tasks/:id/toggle": {"description": "Toggle task completion status"},
    "DELETE /api/tasks/:id": {"description": "Delete task by ID"},
    "DELETE /api/tasks": {
        "description": "Delete multiple tasks",
        "body": {"ids": "Array of task IDs (required, string[])"},
    },
    "DELETE /api/tasks/completed": {"description": "Delete all completed tasks"},
    "GET /api/tasks/stats": {
        "description": "Get task statistics",
        "response": {
            "total": "Total number of tasks",
            "completed": "Number of completed tasks",
            "pending": "Number of pending tasks",
            "completionRate": "Completion rate percentage",
        },
    },
    "GET /api/tasks/search": {
        "description": "Search tasks by text",
        "queryParams": {"q": "Search term (required)", **_LIST_PARAMS},
    },
}


# ---------------------------------------------------------------------------
# Router factory
# ---------------------------------------------------------------------------

def create_task_router(get_repository: Callable[[], TaskRepository]) -> APIRouter:
    """Create the task API router.

    Parameters
    ----------
    get_repository:
        A zero-argument callable returning the :class:`TaskRepository` to use.
    """
    router = APIRouter(prefix="/api/tasks", tags=["tasks"])

    # Static paths are registered before ``/{task_id}`` so they win the match.

    @router.get("/stats")
    def get_task_stats() -> dict[str, Any]:
        stats = get_repository().get_task_stats()
        return _envelope("Task statistics retrieved successfully", stats)

    @router.get("/search")
    def search_tasks(
        q: Optional[str] = Query(None),
        page: Optional[str] = Query(None),
        limit: Optional[str] = Query(None),
        completed: Optional[str] = Query(None),
        sort_by: Optional[str] = Query(None, alias="sortBy"),
        sort_order: Optional[str] = Query(None, alias="sortOrder"),
    ) -> dict[str, Any]:
        if not q or not q.strip():
            raise ValidationError("Search term (q parameter) is required")
        options = build_query_options(page, limit, None, completed, sort_by, sort_order)
        result = get_repository().search_tasks(q, options)
        return _page_envelope("Search completed successfully", result, searchTerm=q)

    @router.get("/docs")
    def route_docs() -> dict[str, Any]:
        return {
            "success": True,
            "message": "TODO API Documentation",
            "endpoints": ROUTE_DOCS,
            "examples": {
                "createTask": {"method": "POST", "url": "/api/tasks", "body": {"text": "Learn FastAPI", "completed": False}},
                "updateTask": {
                    "method": "PATCH",
                    "url": "/api/tasks/123e4567-e89b-42d3-a456-426614174000",
                    "body": {"completed": True},
                },
                "searchTasks": {"method": "GET", "url": "/api/tasks/search?q=fastapi&completed=false&page=1&limit=10"},
            },
        }

    @router.delete("/completed")
    def delete_completed_tasks() -> dict[str, Any]:
        result = get_repository().delete_completed_tasks()
        return _envelope(result["message"], {"deletedCount": result["deletedCount"]})

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    @router.get("")
    def list_tasks(
        page: Optional[str] = Query(None),
        limit: Optional[str] = Query(None),
        search: Optional[str] = Query(None),
        completed: Optional[str] = Query(None),
        sort_by: Optional[str] = Query(None, alias="sortBy"),
        sort_order: Optional[str] = Query(None, alias="sortOrder"),
    ) -> dict[str, Any]:
        options = build_query_options(page, limit, search, completed, sort_by, sort_order)
        result = get_repository().get_all_tasks(options)
        return _page_envelope("Tasks retrieved successfully", result)

    @router.post("", status_code=201)
    def create_task(body: CreateTaskRequest) -> dict[str, Any]:
        text = _require_text(body.text)
        completed = parse_completed(body.completed)
        task = get_repository().create_task({"text": text, "completed": bool(completed)})
        return _envelope("Task created successfully", task.to_dict())

    @router.delete("")
    def delete_tasks(body: Optional[BulkDeleteRequest] = None) -> dict[str, Any]:
        ids = body.ids if body is not None else None
        if not isinstance(ids, list) or not ids or not all(isinstance(i, str) for i in ids):
            raise ValidationError("Array of task IDs is required")
        result = get_repository().delete_tasks(ids)
        return _envelope(
            f"Deleted {result['deletedCount']} out of {result['requestedCount']} tasks",
            result,
        )

    # ------------------------------------------------------------------
    # Single task
    # ------------------------------------------------------------------

    @router.get("/{task_id}")
    def get_task(task_id: str) -> dict[str, Any]:
        task = get_repository().get_task_by_id(task_id)
        if task is None:
            raise _not_found()
        return _envelope("Task retrieved successfully", task.to_dict())

    @router.put("/{task_id}")
    def replace_task(task_id: str, body: UpdateTaskRequest) -> dict[str, Any]:
        text = _require_text(body.text)
        if body.completed is None:
            raise ValidationError("Task text and completed status are both required")
        patch = TaskPatch(text=text, completed=parse_completed(body.completed))
        task = get_repository().update_task(task_id, patch)
        if task is None:
            raise _not_found()
        return _envelope("Task updated successfully", task.to_dict())

    @router.patch("/{task_id}/toggle")
    def toggle_task(task_id: str) -> dict[str, Any]:
        task = get_repository().toggle_task_completion(task_id)
        if task is None:
            raise _not_found()
        return _envelope("Task completion status toggled successfully", task.to_dict())

    @router.patch("/{task_id}")
    def patch_task(task_id: str, body: UpdateTaskRequest) -> dict[str, Any]:
        patch = TaskPatch()
        if body.text is not None:
            if not isinstance(body.text, str):
                raise ValidationError("Task text must be a string")
            patch.text = body.text.strip()
        if body.completed is not None:
            patch.completed = parse_completed(body.completed)
        if patch.is_empty():
            raise ValidationError("At least one field (text or completed) must be provided")
        task = get_repository().update_task(task_id, patch)
        if task is None:
            raise _not_found()
        return _envelope("Task updated successfully", task.to_dict())

    @router.delete("/{task_id}")
    def delete_task(task_id: str) -> dict[str, Any]:
        if not get_repository().delete_task(task_id):
            raise _not_found()
        return _envelope("Task deleted successfully")

    return router
