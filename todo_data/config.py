"""Runtime configuration for the data layer.

``DataConfig`` is a plain dataclass supplied at construction to the HTTP
client and repositories. ``from_dict`` accepts persisted flat payloads and
``from_env`` reads ``TODO_DATA_*`` overrides.
"""
from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import timedelta
from typing import Any, Dict, FrozenSet, Mapping, Optional

from todo_data.domain.errors import ErrorKind
from todo_data.domain.validation import PAGE_SIZE_MAX

DEFAULT_STALE_SERVE_KINDS: FrozenSet[ErrorKind] = frozenset(
    {ErrorKind.NETWORK, ErrorKind.TIMEOUT, ErrorKind.SERVER, ErrorKind.UNKNOWN}
)

_ENV_PREFIX = "TODO_DATA_"


@dataclass(frozen=True)
class DataConfig:
    """Typed settings for cache expiry, retries and paging."""

    base_url: str = "http://localhost:3000/api/v1/"
    api_key: Optional[str] = None
    cache_expiry_s: float = 24 * 60 * 60
    request_timeout_s: float = 30.0
    retry_attempts: int = 3
    retry_backoff_s: float = 1.0
    retry_backoff_max_s: float = 10.0
    retry_backoff_multiplier: float = 2.0
    default_page_size: int = 20
    max_page_size: int = PAGE_SIZE_MAX
    stale_serve_kinds: FrozenSet[ErrorKind] = field(
        default_factory=lambda: DEFAULT_STALE_SERVE_KINDS
    )

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "stale_serve_kinds",
            frozenset(ErrorKind(kind) for kind in self.stale_serve_kinds),
        )
        if self.cache_expiry_s < 0:
            raise ValueError("cache_expiry_s must be non-negative.")
        if self.request_timeout_s <= 0:
            raise ValueError("request_timeout_s must be positive.")
        if self.retry_attempts < 0:
            raise ValueError("retry_attempts must be non-negative.")
        if self.retry_backoff_s < 0 or self.retry_backoff_max_s < 0:
            raise ValueError("retry backoff delays must be non-negative.")
        if self.retry_backoff_multiplier < 1:
            raise ValueError("retry_backoff_multiplier must be at least 1.")
        if not 1 <= self.max_page_size <= PAGE_SIZE_MAX:
            raise ValueError(f"max_page_size must be between 1 and {PAGE_SIZE_MAX}.")
        if not 1 <= self.default_page_size <= self.max_page_size:
            raise ValueError("default_page_size must be between 1 and max_page_size.")

    @property
    def cache_expiry(self) -> timedelta:
        return timedelta(seconds=self.cache_expiry_s)

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------
    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DataConfig":
        if not isinstance(payload, Mapping):
            raise ValueError("Config payload must be a mapping of flat keys.")
        known = {f.name for f in fields(cls)}
        unknown = set(payload.keys()) - known
        if unknown:
            raise ValueError(
                f"Unsupported config keys: {', '.join(sorted(str(key) for key in unknown))}"
            )
        return replace(cls(), **{key: _coerce(key, value) for key, value in payload.items()})

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DataConfig":
        env = os.environ if environ is None else environ
        payload: Dict[str, Any] = {}
        for f in fields(cls):
            raw = env.get(_ENV_PREFIX + f.name.upper())
            if raw is not None and raw.strip():
                payload[f.name] = raw
        return cls.from_dict(payload)

    def to_dict(self) -> Dict[str, Any]:
        snapshot = asdict(self)
        snapshot["stale_serve_kinds"] = sorted(kind.value for kind in self.stale_serve_kinds)
        return snapshot


def _coerce(key: str, value: Any) -> Any:
    if key in {"retry_attempts", "default_page_size", "max_page_size"}:
        return _coerce_int(key, value)
    if key in {
        "cache_expiry_s",
        "request_timeout_s",
        "retry_backoff_s",
        "retry_backoff_max_s",
        "retry_backoff_multiplier",
    }:
        return _coerce_float(key, value)
    if key == "stale_serve_kinds":
        return _coerce_kinds(value)
    if key == "api_key":
        text = "" if value is None else str(value).strip()
        return text or None
    if key == "base_url":
        text = str(value or "").strip()
        if not text:
            raise ValueError("base_url must not be empty.")
        return text if text.endswith("/") else text + "/"
    raise ValueError(f"Unhandled config field: {key}")


def _coerce_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer.")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as exc:
            raise ValueError(f"{name} must be an integer.") from exc
    raise ValueError(f"{name} must be an integer.")


def _coerce_float(name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number.")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError as exc:
            raise ValueError(f"{name} must be a number.") from exc
    raise ValueError(f"{name} must be a number.")


def _coerce_kinds(value: Any) -> FrozenSet[ErrorKind]:
    if isinstance(value, str):
        items = [part for part in value.replace(";", ",").split(",") if part.strip()]
    else:
        items = list(value or ())
    try:
        return frozenset(ErrorKind(str(getattr(item, "value", item)).strip().lower()) for item in items)
    except ValueError as exc:
        raise ValueError(f"stale_serve_kinds contains an unknown kind: {exc}") from exc


__all__ = ["DEFAULT_STALE_SERVE_KINDS", "DataConfig"]
