"""Translate adapter and transport failures into the closed ErrorKind taxonomy."""

from __future__ import annotations

import asyncio
import inspect
import logging
import socket
import ssl
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type, TypeVar, Union

from requests import exceptions as req_exc

from todo_data.adapters.api_errors import (
    ApiConnectionError,
    ApiEmptyBodyError,
    ApiError,
    ApiTimeoutError,
    ErrorEnvelope,
)
from todo_data.domain.errors import (
    AppError,
    DataNotFoundError,
    NetworkError,
    RequestTimeoutError,
    ServerError,
    UnauthorizedError,
    UnknownError,
    ValidationError,
)
from todo_data.domain.outcome import Error, Outcome, Success

T = TypeVar("T")

_log = logging.getLogger(__name__)

_STATUS_TABLE: Dict[int, Tuple[Type[AppError], str]] = {
    401: (UnauthorizedError, "Authentication required"),
    403: (UnauthorizedError, "Access forbidden"),
    404: (DataNotFoundError, "Resource not found"),
    422: (ValidationError, "Invalid request data"),
    500: (ServerError, "Internal server error"),
    502: (ServerError, "Server temporarily unavailable"),
    503: (ServerError, "Server temporarily unavailable"),
    504: (ServerError, "Server temporarily unavailable"),
}

_TIMEOUT_TYPES: Tuple[Type[BaseException], ...] = (
    ApiTimeoutError,
    req_exc.Timeout,
    TimeoutError,
    socket.timeout,
    asyncio.TimeoutError,
)

_NETWORK_TYPES: Tuple[Type[BaseException], ...] = (
    ApiConnectionError,
    req_exc.ConnectionError,
    ConnectionError,
    socket.gaierror,
    ssl.SSLError,
)


def classify_status(
    status: int,
    hint: Optional[str] = None,
    *,
    cause: Optional[BaseException] = None,
) -> AppError:
    """Map an HTTP status to its fixed ErrorKind; unmapped statuses are UNKNOWN."""
    entry = _STATUS_TABLE.get(status)
    if entry is None:
        return UnknownError(f"Unexpected HTTP status {status}", cause=cause)
    error_type, message = entry
    if status == 422:
        message = _compose_error_message(message, hint)
    return error_type(message, cause=cause)


def classify_exception(exc: BaseException) -> AppError:
    """Map any raised failure to an ``AppError``.

    Already-classified ``AppError`` instances pass through unchanged.
    """
    if isinstance(exc, AppError):
        return exc
    # ConnectTimeout is a ConnectionError too; timeouts win.
    if isinstance(exc, _TIMEOUT_TYPES):
        return RequestTimeoutError("Request timed out", cause=exc)
    if isinstance(exc, _NETWORK_TYPES):
        return NetworkError(_network_message(exc), cause=exc)
    if isinstance(exc, ApiEmptyBodyError):
        return DataNotFoundError("Response body is empty", cause=exc)
    if isinstance(exc, ApiError):
        if exc.status is not None:
            hint = exc.hint or ErrorEnvelope.from_body(exc.payload).details
            return classify_status(exc.status, hint, cause=exc)
        return UnknownError(str(exc) or "Unknown error occurred", cause=exc)
    return UnknownError(str(exc) or type(exc).__name__, cause=exc)


def to_error(exc: BaseException) -> Error:
    classified = classify_exception(exc)
    return Error(classified.kind, classified.message, cause=exc)


def run_catching(fn: Callable[..., T], *args: Any, **kwargs: Any) -> Outcome[T]:
    """Call ``fn`` and wrap its result; any ``Exception`` becomes a classified Error."""
    try:
        return Success(fn(*args, **kwargs))
    except Exception as exc:
        _log.debug("run_catching: %s failed: %r", getattr(fn, "__name__", fn), exc)
        return to_error(exc)


async def run_catching_async(
    fn: Callable[..., Union[T, Awaitable[T]]], *args: Any, **kwargs: Any
) -> Outcome[T]:
    """Async counterpart of :func:`run_catching`; cancellation still propagates."""
    try:
        result = fn(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return Success(result)
    except Exception as exc:
        _log.debug("run_catching_async: %s failed: %r", getattr(fn, "__name__", fn), exc)
        return to_error(exc)


def _compose_error_message(base: str, hint: Optional[str]) -> str:
    hint_text = (hint or "").strip()
    if hint_text:
        return f"{base}: {hint_text}"
    return base


def _network_message(exc: BaseException) -> str:
    for candidate in _causes(exc):
        if isinstance(candidate, socket.gaierror):
            return "No internet connection"
        if isinstance(candidate, (ssl.SSLError, req_exc.SSLError)):
            return "SSL/TLS error"
    return "Unable to connect to server"


def _causes(exc: BaseException, limit: int = 8):
    """Walk ``exc`` and the exceptions it wraps (``reason``, chaining, args)."""
    seen = set()
    pending = [exc]
    while pending and len(seen) < limit:
        current = pending.pop(0)
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        for nested in (
            getattr(current, "reason", None),
            current.__cause__,
            current.__context__,
            *getattr(current, "args", ()),
        ):
            if isinstance(nested, BaseException):
                pending.append(nested)


__all__ = [
    "classify_exception",
    "classify_status",
    "run_catching",
    "run_catching_async",
    "to_error",
]
