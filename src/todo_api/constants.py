"""Shared constants for the todo API."""

from __future__ import annotations

APP_NAME = "TODO App API"
APP_VERSION = "1.0.0"

DATA_DIR_NAME = "data"
STORE_FILENAME = "tasks.json"
LOCK_FILENAME = "tasks.lock"
CONFIG_ENV_VAR = "TODO_API_CONFIG"

# Task entity
TEXT_MAX_LENGTH = 100

# Pagination
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100

# Middleware defaults
RATE_LIMIT_WINDOW_SECONDS = 15 * 60.0
RATE_LIMIT_MAX_REQUESTS = 100
REQUEST_TIMEOUT_SECONDS = 30.0
MAX_BODY_BYTES = 10 * 1024 * 1024

WINDOWS_LOCK_BYTES = 1
