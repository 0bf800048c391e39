"""Load server configuration from an optional YAML file and the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

from .constants import (
    CONFIG_ENV_VAR,
    DATA_DIR_NAME,
    MAX_BODY_BYTES,
    RATE_LIMIT_MAX_REQUESTS,
    RATE_LIMIT_WINDOW_SECONDS,
    REQUEST_TIMEOUT_SECONDS,
)
from .io_utils import _load_data_with_error

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class TodoApiConfig:
    """Runtime settings for the API server and CLI."""

    data_dir: Path = Path(DATA_DIR_NAME)
    host: str = "127.0.0.1"
    port: int = 3000
    log_level: str = "INFO"
    environment: str = "development"
    enable_cors: bool = True
    rate_limit_max: int = RATE_LIMIT_MAX_REQUESTS
    rate_limit_window: float = RATE_LIMIT_WINDOW_SECONDS
    request_timeout: float = REQUEST_TIMEOUT_SECONDS
    max_body_bytes: int = MAX_BODY_BYTES

    def merged(self, values: Mapping[str, Any]) -> "TodoApiConfig":
        """Return a copy with *values* applied, coercing each to the field's type."""
        current = {f.name: getattr(self, f.name) for f in fields(self)}
        for key, raw in values.items():
            if key not in current or raw is None:
                continue
            current[key] = _coerce(current[key], raw)
        return TodoApiConfig(**current)


def _coerce(default: Any, raw: Any) -> Any:
    if isinstance(default, bool):
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() in _TRUE_VALUES
    if isinstance(default, Path):
        return Path(str(raw)).expanduser()
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return str(raw)


_ENV_KEYS = {
    "TODO_API_DATA_DIR": "data_dir",
    "TODO_API_HOST": "host",
    "TODO_API_PORT": "port",
    "TODO_API_LOG_LEVEL": "log_level",
    "TODO_API_ENV": "environment",
    "TODO_API_CORS": "enable_cors",
    "TODO_API_RATE_LIMIT_MAX": "rate_limit_max",
    "TODO_API_RATE_LIMIT_WINDOW": "rate_limit_window",
    "TODO_API_REQUEST_TIMEOUT": "request_timeout",
    "TODO_API_MAX_BODY_BYTES": "max_body_bytes",
}


def _env_values(env: Mapping[str, str]) -> dict[str, Any]:
    return {field_name: env[var] for var, field_name in _ENV_KEYS.items() if env.get(var, "").strip()}


def load_config(
    config_path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> tuple[TodoApiConfig, str | None]:
    """Build the effective configuration.

    Args:
        config_path: Optional YAML/JSON file. Falls back to ``$TODO_API_CONFIG``.
        env: Environment mapping (defaults to ``os.environ``).

    Returns:
        A tuple of `(config, error_message)`. A broken config file is reported in
        `error_message` and skipped; environment overrides still apply.
    """
    env = os.environ if env is None else env
    config = TodoApiConfig()
    error: str | None = None

    path = config_path or (Path(env[CONFIG_ENV_VAR]) if env.get(CONFIG_ENV_VAR) else None)
    if path is not None:
        data, error = _load_data_with_error(Path(path).expanduser(), {})
        if not error:
            try:
                config = config.merged(data)
            except (TypeError, ValueError) as exc:
                error = f"{Path(path).name}: {exc}"

    try:
        config = config.merged(_env_values(env))
    except (TypeError, ValueError) as exc:
        error = f"environment: {exc}"
    return config, error
