"""Typed failures raised by the task API adapters.

The server reports failures inside its response envelope::

    {"success": false, "message": "...",
     "error": {"code": "...", "message": "...", "details": {"field": "..."}}}

Adapters raise these exceptions untranslated; ``usecases.error_mapping``
turns them into the domain error taxonomy.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Type

_DETAIL_LIMIT = 200


class ApiError(RuntimeError):
    """Base class for task API adapter failures.

    ``status`` is ``None`` for transport failures and for envelopes that
    reported ``success: false`` on a 2xx response.
    """

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        code: Optional[str] = None,
        hint: Optional[str] = None,
        payload: Any = None,
        context: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.code = code
        self.hint = hint
        self.payload = payload
        self.context = context


class ApiHttpError(ApiError):
    """Non-2xx response; ``status`` is always set."""

    def __init__(self, message: str, *, status: int, **fields: Any) -> None:
        super().__init__(message, status=status, **fields)

    @staticmethod
    def for_status(status: int) -> Type["ApiHttpError"]:
        if 400 <= status < 500:
            return ApiClientError
        if 500 <= status < 600:
            return ApiServerError
        return ApiHttpError


class ApiClientError(ApiHttpError):
    """HTTP 4xx from the task API."""


class ApiServerError(ApiHttpError):
    """HTTP 5xx from the task API."""


class ApiTimeoutError(ApiError):
    """Connect or read timeout."""

    def __init__(self, message: str, *, context: Optional[str] = None) -> None:
        super().__init__(message, context=context)


class ApiConnectionError(ApiError):
    """Host unreachable, DNS failure or TLS handshake error."""

    def __init__(
        self,
        message: str,
        *,
        reason: Optional[BaseException] = None,
        context: Optional[str] = None,
    ) -> None:
        super().__init__(message, context=context)
        self.reason = reason


class ApiEmptyBodyError(ApiError):
    """2xx response whose envelope carried no ``data``."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        context: Optional[str] = None,
    ) -> None:
        super().__init__(message, status=status, context=context)


@dataclass(frozen=True)
class ErrorEnvelope:
    """Error fields read from a task API response body.

    Accepts the nested ``error`` object, a bare ``error`` string, flat
    ``code``/``message`` keys, or a plain-text body.
    """

    message: Optional[str] = None
    code: Optional[str] = None
    details: Optional[str] = None

    @classmethod
    def from_body(cls, body: Any) -> "ErrorEnvelope":
        if isinstance(body, str):
            return cls(message=_text(body[:400]))
        if not isinstance(body, dict):
            return cls()
        error = body.get("error")
        if isinstance(error, dict):
            return cls(
                message=_text(error.get("message")) or _text(body.get("message")),
                code=_text(error.get("code")),
                details=_details(error.get("details")) or _details(body.get("details")),
            )
        return cls(
            message=_text(error) or _text(body.get("message")) or _text(body.get("detail")),
            code=_text(body.get("code")),
            details=_details(body.get("details", body.get("errors"))),
        )

    def describe(self, ctx: str, status: Optional[int] = None) -> str:
        text = f"{ctx}: {self.message}" if self.message else ctx
        if status is not None:
            text += f" (HTTP {status})" if self.message else f": HTTP {status}"
        return text


def response_body(resp: Any) -> Any:
    """Decoded JSON of ``resp``, else its text (``None`` when empty)."""
    try:
        return resp.json()
    except ValueError:
        text = getattr(resp, "text", "") or ""
        return text[:400] or None


def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _details(value: Any) -> Optional[str]:
    # {"title": "required"} or [{"field": "title", "message": "required"}, ...]
    if isinstance(value, dict):
        if "message" in value:
            field, message = _text(value.get("field")), _text(value.get("message"))
            text = f"{field}: {message}" if field and message else (message or "")
        else:
            pairs = ((key, _details(item)) for key, item in value.items())
            text = ", ".join(f"{key}={item}" for key, item in pairs if item)
    elif isinstance(value, list):
        parts = (_details(item) for item in value[:3])
        text = "; ".join(part for part in parts if part)
    else:
        text = _text(value) or ""
    return text[:_DETAIL_LIMIT] or None


__all__ = [
    "ApiClientError",
    "ApiConnectionError",
    "ApiEmptyBodyError",
    "ApiError",
    "ApiHttpError",
    "ApiServerError",
    "ApiTimeoutError",
    "ErrorEnvelope",
    "response_body",
]
