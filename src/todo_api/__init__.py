"""Provide the public `todo_api` package exports."""

from __future__ import annotations

from .server import create_app
from .task_engine import Task, TaskRepository, TaskStore

__all__ = ["Task", "TaskRepository", "TaskStore", "create_app"]
