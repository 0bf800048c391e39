"""HTTP middleware: headers, logging, request guards and rate limiting."""

from __future__ import annotations

import asyncio
import math
import threading
import time
from collections import deque
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from ..config import TodoApiConfig
from ..errors import RateLimitError

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

_BODY_METHODS = {"POST", "PUT", "PATCH"}


class RateLimiter:
    """Sliding-window request counter keyed by client id.

    State lives in memory for the life of the app; one instance is shared by
    every request handled by that app.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    @property
    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._hits)

    @property
    def retry_after(self) -> int:
        return math.ceil(self.window_seconds)

    def hit(self, client_id: str) -> bool:
        """Record a request; return False when *client_id* is over the limit."""
        now = self._clock()
        window_start = now - self.window_seconds
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(window_start)
                self._last_sweep = now
            hits = self._hits.setdefault(client_id, deque())
            while hits and hits[0] <= window_start:
                hits.popleft()
            if len(hits) >= self.max_requests:
                if not hits:
                    del self._hits[client_id]
                return False
            hits.append(now)
            return True

    def _sweep(self, window_start: float) -> None:
        # Drop clients with no hit inside the current window.
        idle = [cid for cid, hits in self._hits.items() if not hits or hits[-1] <= window_start]
        for cid in idle:
            del self._hits[cid]

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


def _client_id(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def install_middleware(
    app: FastAPI,
    config: TodoApiConfig,
    limiter: Optional[RateLimiter] = None,
    guarded_prefix: str = "/api/tasks",
) -> RateLimiter:
    """Register the middleware stack on *app* and return its rate limiter.

    Starlette runs the most recently added middleware first, so the request
    passes through: CORS, security headers, timeout, request log, then the
    guards on ``guarded_prefix`` (content type, body size, rate limit).
    """
    limiter = limiter or RateLimiter(config.rate_limit_max, config.rate_limit_window)

    @app.middleware("http")
    async def guard_task_routes(request: Request, call_next):
        if not request.url.path.startswith(guarded_prefix):
            return await call_next(request)

        if request.method in _BODY_METHODS:
            content_type = request.headers.get("content-type")
            if content_type and "application/json" not in content_type:
                return _error(400, "Content-Type must be application/json")

        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > config.max_body_bytes:
            return _error(413, "Request entity too large")

        if not limiter.hit(_client_id(request)):
            exc = RateLimitError("Too many requests. Please try again later.", limiter.retry_after)
            logger.warning("Rate limit exceeded for {}", _client_id(request))
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_dict(),
                headers={"Retry-After": str(exc.retry_after)},
            )
        return await call_next(request)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "{} {} -> {} ({:.1f} ms) - {}",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request.headers.get("user-agent", "Unknown"),
        )
        return response

    @app.middleware("http")
    async def enforce_timeout(request: Request, call_next):
        try:
            return await asyncio.wait_for(call_next(request), timeout=config.request_timeout)
        except asyncio.TimeoutError:
            logger.warning("Request timed out: {} {}", request.method, request.url.path)
            return _error(408, "Request timeout")

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    if config.enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization"],
        )

    return limiter
