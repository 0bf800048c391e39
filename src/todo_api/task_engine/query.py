"""Filtering, sorting and pagination over an in-memory task list."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..constants import DEFAULT_LIMIT, DEFAULT_PAGE
from .model import SortKey, SortOrder, Task


@dataclass
class QueryOptions:
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    search: str = ""
    completed: Optional[bool] = None
    sort_by: SortKey = SortKey.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC

    def normalized(self) -> "QueryOptions":
        """Copy with ``page`` and ``limit`` clamped into range."""
        return QueryOptions(
            page=self.page if self.page >= 1 else DEFAULT_PAGE,
            limit=self.limit if self.limit >= 1 else DEFAULT_LIMIT,
            search=(self.search or "").strip(),
            completed=self.completed,
            sort_by=self.sort_by,
            sort_order=self.sort_order,
        )


@dataclass
class Pagination:
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


@dataclass
class TaskPage:
    tasks: list[Task] = field(default_factory=list)
    pagination: Optional[Pagination] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "tasks": [t.to_dict() for t in self.tasks],
            "pagination": self.pagination.to_dict() if self.pagination else None,
        }


def filter_tasks(tasks: Iterable[Task], search: str = "", completed: Optional[bool] = None) -> list[Task]:
    out: list[Task] = []
    needle = search.lower() if search else ""
    for t in tasks:
        if needle and needle not in t.text.lower():
            continue
        if completed is not None and t.completed is not completed:
            continue
        out.append(t)
    return out


def sort_tasks(tasks: Iterable[Task], sort_by: SortKey, sort_order: SortOrder) -> list[Task]:
    return sorted(tasks, key=sort_by.key_func(), reverse=sort_order is SortOrder.DESC)


def paginate(tasks: list[Task], page: int, limit: int) -> TaskPage:
    total = len(tasks)
    total_pages = math.ceil(total / limit)
    offset = (page - 1) * limit
    return TaskPage(
        tasks=tasks[offset:offset + limit],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        ),
    )


def run_query(tasks: Iterable[Task], options: QueryOptions) -> TaskPage:
    """Filter, sort, then slice *tasks* according to *options*."""
    opts = options.normalized()
    matched = filter_tasks(tasks, search=opts.search, completed=opts.completed)
    ordered = sort_tasks(matched, opts.sort_by, opts.sort_order)
    return paginate(ordered, opts.page, opts.limit)
