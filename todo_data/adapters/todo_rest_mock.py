from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Generic, List, Optional, Type, TypeVar
from uuid import uuid4

from todo_data.adapters.api_errors import ApiClientError
from todo_data.domain.entities import Category, Feedback, Task, User
from todo_data.domain.time_utils import utc_now

E = TypeVar("E")


@dataclass
class InMemoryRemote(Generic[E]):
    """Offline substitute for the REST remote sources with deterministic responses.

    Listing applies the query's own ``select`` when it has one, otherwise the
    configured ordering followed by the query's page slice.
    """

    entity_type: Type[Any]
    resource: str
    clock: Callable[[], datetime] = utc_now
    sort_key: Callable[[Any], Any] = field(default=lambda entity: entity.created_at)
    descending: bool = True

    def __post_init__(self) -> None:
        self._items: Dict[str, E] = {}
        self._failures: List[BaseException] = []
        self.calls: Counter = Counter()

    # ---------- RemoteSource ----------

    def fetch(self, query: Any) -> List[E]:
        self._enter("fetch")
        items = list(self._items.values())
        if hasattr(query, "matches"):
            return query.select(items)
        ordered = sorted(items, key=self.sort_key, reverse=self.descending)
        if query is None:
            return ordered
        return query.select(ordered)

    def fetch_by_id(self, entity_id: str) -> E:
        self._enter("fetch_by_id")
        return self._require(entity_id)

    def create(self, params: Any) -> E:
        self._enter("create")
        entity = self.entity_type.from_create(uuid4().hex, params, self.clock())
        self._items[entity.id] = entity
        return entity

    def update(self, params: Any) -> E:
        self._enter("update")
        current = self._require(params.id)
        entity = current.apply_update(params, self.clock())
        self._items[entity.id] = entity
        return entity

    def delete(self, entity_id: str) -> None:
        self._enter("delete")
        self._require(entity_id)
        del self._items[entity_id]

    # ---------- Test helpers ----------

    def seed(self, *entities: E) -> None:
        for entity in entities:
            self._items[entity.id] = entity

    def fail_with(self, *errors: BaseException) -> None:
        """Raise ``errors`` (in order) from the next calls instead of answering."""
        self._failures.extend(errors)

    def items(self) -> List[E]:
        return list(self._items.values())

    def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        if self._failures:
            raise self._failures.pop(0)

    def _require(self, entity_id: str) -> E:
        entity = self._items.get(entity_id)
        if entity is None:
            raise ApiClientError(
                f"{self.resource}[{entity_id}]: Resource not found (HTTP 404)",
                status=404,
                context=f"{self.resource}[{entity_id}]",
            )
        return entity


@dataclass
class TaskRemoteMock(InMemoryRemote[Task]):
    entity_type: Type[Any] = Task
    resource: str = "tasks"

    def complete(self, task_id: str) -> Task:
        self._enter("complete")
        current = self._require(task_id)
        entity = current.apply_update(_Completion(), self.clock())
        self._items[entity.id] = entity
        return entity

    def search(self, text: str) -> List[Task]:
        self._enter("search")
        needle = text.strip().lower()
        found = [
            task
            for task in self._items.values()
            if needle in task.title.lower() or needle in (task.description or "").lower()
        ]
        return sorted(found, key=self.sort_key, reverse=self.descending)


@dataclass(frozen=True)
class _Completion:
    completed: bool = True


def category_remote_mock(clock: Callable[[], datetime] = utc_now) -> InMemoryRemote[Category]:
    return InMemoryRemote(
        Category, "categories", clock, sort_key=lambda c: c.name.lower(), descending=False
    )


def feedback_remote_mock(clock: Callable[[], datetime] = utc_now) -> InMemoryRemote[Feedback]:
    return InMemoryRemote(Feedback, "feedback", clock)


def user_remote_mock(clock: Callable[[], datetime] = utc_now) -> InMemoryRemote[User]:
    return InMemoryRemote(User, "users", clock)


@dataclass
class AuthRemoteMock:
    """Offline ``AuthRestSource``: any phone number gets ``otp`` as its code."""

    otp: str = "123456"
    expires_in: int = 3600

    def __post_init__(self) -> None:
        self._pending: Dict[str, str] = {}
        self._users: Dict[str, Dict[str, Any]] = {}
        self._failures: List[BaseException] = []
        self.calls: Counter = Counter()
        self.tokens: List[str] = []

    def login(self, params: Any) -> str:
        self._enter("login")
        self._pending[params.phone_number] = self.otp
        return f"OTP sent successfully to {params.phone_number}"

    def verify_otp(self, params: Any) -> Dict[str, Any]:
        self._enter("verify_otp")
        if self._pending.get(params.phone_number) != params.otp:
            raise ApiClientError("auth verify-otp: Invalid OTP (HTTP 401)", status=401, context="auth verify-otp")
        del self._pending[params.phone_number]
        user = self._users.setdefault(
            params.phone_number,
            {"id": uuid4().hex, "phoneNumber": params.phone_number, "name": "Demo User"},
        )
        token = uuid4().hex
        self.tokens.append(token)
        return {
            "token": token,
            "refreshToken": uuid4().hex,
            "expiresIn": self.expires_in,
            "user": dict(user),
        }

    def logout(self) -> None:
        self._enter("logout")

    def fail_with(self, *errors: BaseException) -> None:
        self._failures.extend(errors)

    def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        if self._failures:
            raise self._failures.pop(0)


__all__ = [
    "AuthRemoteMock",
    "InMemoryRemote",
    "TaskRemoteMock",
    "category_remote_mock",
    "feedback_remote_mock",
    "user_remote_mock",
]
