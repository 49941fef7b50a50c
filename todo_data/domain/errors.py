"""Domain-level error taxonomy shared by repositories and use cases.

Every failure that leaves the data layer is expressed as one of the closed
``ErrorKind`` values. ``AppError`` subclasses are the raisable form of the
same taxonomy; adapters never raise them, the classifier produces them.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed set of failure categories."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    SERVER = "server"
    UNAUTHORIZED = "unauthorized"
    VALIDATION = "validation"
    DATA_NOT_FOUND = "data_not_found"
    UNKNOWN = "unknown"

    @property
    def user_message(self) -> str:
        """Stable, user-presentable text for this kind."""
        return _USER_MESSAGES[self]


_USER_MESSAGES = {
    ErrorKind.NETWORK: "Please check your internet connection and try again",
    ErrorKind.TIMEOUT: "Request timed out. Please try again",
    ErrorKind.SERVER: "Server error. Please try again later",
    ErrorKind.UNAUTHORIZED: "Please log in again",
    ErrorKind.VALIDATION: "Invalid data provided",
    ErrorKind.DATA_NOT_FOUND: "Data not found",
    ErrorKind.UNKNOWN: "An error occurred. Please try again",
}


class AppError(Exception):
    """Classified failure carrying its ``ErrorKind``."""

    kind: ErrorKind = ErrorKind.UNKNOWN
    default_message: str = "Unknown error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        cause: Optional[BaseException] = None,
    ) -> None:
        text = message or self.default_message
        super().__init__(text)
        self.message = text
        self.cause = cause

    @property
    def user_message(self) -> str:
        if self.kind is ErrorKind.VALIDATION and self.message:
            return self.message
        return self.kind.user_message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class NetworkError(AppError):
    kind = ErrorKind.NETWORK
    default_message = "Network error occurred"


class RequestTimeoutError(AppError):
    kind = ErrorKind.TIMEOUT
    default_message = "Request timed out"


class ServerError(AppError):
    kind = ErrorKind.SERVER
    default_message = "Server error occurred"


class UnauthorizedError(AppError):
    kind = ErrorKind.UNAUTHORIZED
    default_message = "Unauthorized access"


class ValidationError(AppError):
    kind = ErrorKind.VALIDATION
    default_message = "Validation error"


class DataNotFoundError(AppError):
    kind = ErrorKind.DATA_NOT_FOUND
    default_message = "Data not found"


class UnknownError(AppError):
    kind = ErrorKind.UNKNOWN


_ERROR_TYPES = {
    ErrorKind.NETWORK: NetworkError,
    ErrorKind.TIMEOUT: RequestTimeoutError,
    ErrorKind.SERVER: ServerError,
    ErrorKind.UNAUTHORIZED: UnauthorizedError,
    ErrorKind.VALIDATION: ValidationError,
    ErrorKind.DATA_NOT_FOUND: DataNotFoundError,
    ErrorKind.UNKNOWN: UnknownError,
}


def error_for_kind(
    kind: ErrorKind,
    message: Optional[str] = None,
    *,
    cause: Optional[BaseException] = None,
) -> AppError:
    """Build the ``AppError`` subclass matching ``kind``."""
    return _ERROR_TYPES[ErrorKind(kind)](message, cause=cause)


__all__ = [
    "AppError",
    "DataNotFoundError",
    "ErrorKind",
    "NetworkError",
    "RequestTimeoutError",
    "ServerError",
    "UnauthorizedError",
    "UnknownError",
    "ValidationError",
    "error_for_kind",
]
