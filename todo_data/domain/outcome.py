"""Tri-state result of every data-layer operation.

``Success`` carries a value (optionally flagged ``stale`` when it was served
from cache after a failed refresh), ``Error`` carries a classified failure
and ``Loading`` marks an operation in flight.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Optional, TypeVar

from todo_data.domain.errors import AppError, ErrorKind, error_for_kind

T = TypeVar("T")
U = TypeVar("U")
R = TypeVar("R")


class Outcome(Generic[T]):
    """Base of the Success / Error / Loading union."""

    def is_success(self) -> bool:
        return isinstance(self, Success)

    def is_error(self) -> bool:
        return isinstance(self, Error)

    def is_loading(self) -> bool:
        return isinstance(self, Loading)

    def map(self, transform: Callable[[T], U]) -> "Outcome[U]":
        """Transform the success value; Error and Loading pass through untouched."""
        if isinstance(self, Success):
            return Success(transform(self.value), stale=self.stale)
        return self  # type: ignore[return-value]

    def map_error(self, transform: Callable[["Error"], "Error"]) -> "Outcome[T]":
        """Rewrite the Error variant only."""
        if not isinstance(self, Error):
            return self
        mapped = transform(self)
        if not isinstance(mapped, Error):
            raise TypeError("map_error transform must return an Error")
        return mapped

    def fold(
        self,
        on_success: Callable[[T], R],
        on_error: Callable[["Error"], R],
        on_loading: Optional[Callable[[], R]] = None,
    ) -> Optional[R]:
        """Run exactly one branch for the active variant."""
        if isinstance(self, Success):
            return on_success(self.value)
        if isinstance(self, Error):
            return on_error(self)
        if on_loading is None:
            return None
        return on_loading()

    def get_or_none(self) -> Optional[T]:
        if isinstance(self, Success):
            return self.value
        return None

    def error_or_none(self) -> Optional["Error"]:
        if isinstance(self, Error):
            return self
        return None

    def get_or_raise(self) -> T:
        """Return the success value or raise the classified exception."""
        if isinstance(self, Success):
            return self.value
        if isinstance(self, Error):
            raise self.to_exception()
        raise RuntimeError("Outcome is still loading")

    def on_success(self, action: Callable[[T], Any]) -> "Outcome[T]":
        if isinstance(self, Success):
            action(self.value)
        return self

    def on_error(self, action: Callable[["Error"], Any]) -> "Outcome[T]":
        if isinstance(self, Error):
            action(self)
        return self

    def on_loading(self, action: Callable[[], Any]) -> "Outcome[T]":
        if isinstance(self, Loading):
            action()
        return self


@dataclass(frozen=True)
class Success(Outcome[T]):
    value: T
    stale: bool = False


@dataclass(frozen=True)
class Error(Outcome[Any]):
    kind: ErrorKind
    message: str
    cause: Optional[BaseException] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.kind, ErrorKind):
            object.__setattr__(self, "kind", ErrorKind(self.kind))

    @property
    def user_message(self) -> str:
        if self.kind is ErrorKind.VALIDATION and self.message:
            return self.message
        return self.kind.user_message

    def to_exception(self) -> AppError:
        if isinstance(self.cause, AppError) and self.cause.kind is self.kind:
            return self.cause
        return error_for_kind(self.kind, self.message, cause=self.cause)

    @classmethod
    def from_exception(cls, exc: AppError) -> "Error":
        return cls(exc.kind, exc.message, cause=exc)


@dataclass(frozen=True)
class Loading(Outcome[Any]):
    pass


LOADING = Loading()


__all__ = ["Error", "LOADING", "Loading", "Outcome", "Success"]
