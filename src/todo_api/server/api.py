"""FastAPI application factory for the todo API."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..config import TodoApiConfig, load_config
from ..constants import APP_NAME, APP_VERSION
from ..errors import TodoApiError
from ..task_engine.repository import TaskRepository
from ..utils import _now_iso
from .middleware import RateLimiter, install_middleware
from .task_api import create_task_router

ARCHITECTURE = {
    "layer1": "Router Layer - HTTP endpoints and routing",
    "layer2": "Middleware Layer - Validation, rate limiting, logging, security headers",
    "layer3": "Handler Layer - Request parsing and response mapping",
    "layer4": "Repository Layer - Business rules and data access",
    "layer5": "Model Layer - Task structure and validation",
    "layer6": "Storage Layer - JSON file persistence and queries",
    "layer7": "Entry Point - Application setup and configuration",
}

FEATURES = [
    "Full CRUD operations",
    "Pagination and filtering",
    "Search functionality",
    "Task statistics",
    "Bulk operations",
    "Input validation",
    "Error handling",
    "Rate limiting",
    "CORS support",
    "Security headers",
    "Request logging",
    "File-based storage",
]


def create_app(
    data_dir: Optional[Path] = None,
    config: Optional[TodoApiConfig] = None,
    enable_cors: Optional[bool] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        data_dir: Directory holding ``tasks.json``; overrides ``config.data_dir``.
        config: Runtime settings (defaults to :class:`TodoApiConfig`).
        enable_cors: Overrides ``config.enable_cors`` when given.
        rate_limiter: Pre-built limiter, mainly for tests.

    Returns:
        Configured FastAPI app.
    """
    config = config or TodoApiConfig()
    overrides: dict[str, object] = {}
    if data_dir is not None:
        overrides["data_dir"] = data_dir
    if enable_cors is not None:
        overrides["enable_cors"] = enable_cors
    if overrides:
        config = config.merged(overrides)

    app = FastAPI(
        title=APP_NAME,
        description="Multi-layer CRUD API for short text tasks backed by a JSON file",
        version=APP_VERSION,
    )
    app.state.config = config
    app.state.repository = TaskRepository(config.data_dir)
    app.state.started_at = time.monotonic()
    app.state.rate_limiter = install_middleware(app, config, rate_limiter)

    def _get_repository() -> TaskRepository:
        return app.state.repository

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------

    @app.exception_handler(TodoApiError)
    async def handle_todo_error(request: Request, exc: TodoApiError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.opt(exception=exc).error("{} {} failed: {}", request.method, request.url.path, exc.message)
            content = {"success": False, "message": "Internal server error"}
            if config.environment == "development":
                content["error"] = exc.message
            return JSONResponse(status_code=exc.status_code, content=content)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [str(err.get("msg", err)) for err in exc.errors()]
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Invalid request", "details": details},
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404 and request.url.path.startswith("/api"):
            message = f"Route {request.method} {request.url.path} not found"
        else:
            message = str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"success": False, "message": message})

    # ------------------------------------------------------------------
    # Service endpoints
    # ------------------------------------------------------------------

    @app.get("/health")
    async def health() -> dict[str, object]:
        return {
            "success": True,
            "message": "Server is running",
            "timestamp": _now_iso(),
            "uptime": round(time.monotonic() - app.state.started_at, 3),
            "environment": config.environment,
            "version": APP_VERSION,
        }

    @app.get("/api")
    async def api_index() -> dict[str, object]:
        return {
            "success": True,
            "message": APP_NAME,
            "version": APP_VERSION,
            "architecture": ARCHITECTURE,
            "dataFlow": "HTTP Request → Router → Middleware → Handler → Repository → Model → Storage",
            "endpoints": {
                "health": "GET /health",
                "api_docs": "GET /api",
                "tasks_docs": "GET /api/tasks/docs",
                "tasks": "GET /api/tasks",
            },
            "features": FEATURES,
        }

    app.include_router(create_task_router(_get_repository))

    logger.debug("Todo API ready (data_dir={})", config.data_dir)
    return app


def create_app_from_env() -> FastAPI:
    """App factory for ``uvicorn --factory``; settings come from ``TODO_API_*``."""
    config, error = load_config()
    if error:
        logger.warning("Ignoring config: {}", error)
    return create_app(config=config)
