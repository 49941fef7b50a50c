"""Logging setup and API call tracing for the data layer.

``configure_logging`` belongs in the embedding application's entry point.
The requested level is overridden by ``TODO_DATA_LOG_LEVEL`` or by a truthy
``TODO_DATA_DEBUG``; at DEBUG the ``urllib3`` connection log is enabled too.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Mapping, Optional

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%H:%M:%S"
_LEVEL_VAR = "TODO_DATA_LOG_LEVEL"
_DEBUG_VAR = "TODO_DATA_DEBUG"
_TRUTHY = {"1", "true", "yes", "on"}
_SENSITIVE_KEYS = {"authorization", "x-api-key", "api_key", "token", "password", "otp"}

_api_log = logging.getLogger("todo_data.api")


def parse_level(value: Any, fallback: int = logging.INFO) -> int:
    """Level from an int, a numeric string or a level name; ``fallback`` otherwise."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = str(value or "").strip().upper()
    if text.isdigit():
        return int(text)
    level = logging.getLevelName(text)
    return level if isinstance(level, int) else fallback


def env_level(environ: Optional[Mapping[str, str]] = None) -> Optional[int]:
    """Level forced by the environment, or ``None``."""
    env = os.environ if environ is None else environ
    explicit = (env.get(_LEVEL_VAR) or "").strip()
    if explicit:
        return parse_level(explicit)
    if (env.get(_DEBUG_VAR) or "").strip().lower() in _TRUTHY:
        return logging.DEBUG
    return None


def configure_logging(
    level: Any = logging.INFO,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> int:
    """Install the compact root handler once and apply the effective level."""
    forced = env_level(environ)
    effective = forced if forced is not None else parse_level(level)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=effective, format=_FORMAT, datefmt=_DATEFMT)
    root.setLevel(effective)
    if effective <= logging.DEBUG:
        logging.getLogger("urllib3").setLevel(logging.DEBUG)
    return effective


def mask_sensitive(data: Any) -> Any:
    """Copy of ``data`` with credential-like values replaced by ``***``."""
    if isinstance(data, Mapping):
        return {
            key: "***" if str(key).lower() in _SENSITIVE_KEYS else mask_sensitive(value)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [mask_sensitive(item) for item in data]
    return data


# ---- API call tracing ----
def log_api_call(method: str, url: str, params: Any = None) -> None:
    if params:
        _api_log.debug("-> %s %s params=%s", method, url, mask_sensitive(params))
    else:
        _api_log.debug("-> %s %s", method, url)


def log_api_success(method: str, url: str, status: int, elapsed_ms: float) -> None:
    _api_log.debug("<- %s %s HTTP %s (%.0f ms)", method, url, status, elapsed_ms)


def log_api_error(method: str, url: str, error: Any) -> None:
    _api_log.warning("x- %s %s failed: %s", method, url, error)


def log_api_retry(method: str, url: str, attempt: int, max_attempts: int, delay_s: float) -> None:
    _api_log.info(
        "Retrying %s %s (attempt %d/%d) in %.2fs", method, url, attempt, max_attempts, delay_s
    )


def log_api_cache(collection: str, key: Any, hit: bool) -> None:
    _api_log.debug("cache %s for %s %s", "hit" if hit else "miss", collection, key)


__all__ = [
    "configure_logging",
    "env_level",
    "log_api_cache",
    "log_api_call",
    "log_api_error",
    "log_api_retry",
    "log_api_success",
    "mask_sensitive",
    "parse_level",
]
