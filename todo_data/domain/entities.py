from __future__ import annotations

"""Domain entities cached locally and exchanged with the task API."""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Generic, Mapping, Optional, Type, TypeVar

from todo_data.domain.time_utils import (
    format_timestamp,
    parse_optional_timestamp,
    parse_timestamp,
)


class TaskPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, value: Any) -> "TaskPriority":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        if not text:
            return cls.MEDIUM
        return cls(text)

    @property
    def weight(self) -> int:
        """Ordering weight; ascending order runs LOW to HIGH."""
        return {"low": 1, "medium": 2, "high": 3}[self.value]


class FeedbackCategory(str, Enum):
    GENERAL = "general"
    FEATURE_REQUEST = "feature_request"
    BUG_REPORT = "bug_report"
    IMPROVEMENT = "improvement"

    @classmethod
    def parse(cls, value: Any) -> "FeedbackCategory":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower().replace(" ", "_").replace("-", "_")
        if not text:
            return cls.GENERAL
        return cls(text)

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


def _check_identity(entity: Any, label: str) -> None:
    if not isinstance(entity.id, str) or not entity.id.strip():
        raise ValueError(f"{label} id must be a non-empty string.")
    if not isinstance(entity.created_at, datetime):
        raise ValueError(f"{label} created_at must be a datetime.")
    if entity.updated_at is not None and entity.updated_at < entity.created_at:
        raise ValueError(f"{label} updated_at must not precede created_at.")


def _nested_id(payload: Mapping[str, Any], flat_key: str, nested_key: str) -> Optional[str]:
    value = payload.get(flat_key)
    if value:
        return str(value)
    nested = payload.get(nested_key)
    if isinstance(nested, Mapping) and nested.get("id"):
        return str(nested["id"])
    if isinstance(nested, str) and nested.strip():
        return nested
    return None


@dataclass(frozen=True)
class Task:
    """A to-do item."""

    id: str
    title: str
    created_at: datetime
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    category_id: Optional[str] = None
    due_date: Optional[datetime] = None
    completed: bool = False
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "priority", TaskPriority.parse(self.priority))
        _check_identity(self, "Task")

    def is_overdue(self, now: datetime) -> bool:
        return self.due_date is not None and not self.completed and self.due_date < now

    def is_due_today(self, now: datetime) -> bool:
        return self.due_date is not None and self.due_date.date() == now.date()

    def is_due_this_week(self, now: datetime) -> bool:
        if self.due_date is None:
            return False
        return now <= self.due_date <= now + timedelta(days=7)

    @classmethod
    def from_create(cls, task_id: str, params: Any, now: datetime) -> "Task":
        return cls(
            id=task_id,
            title=params.title,
            description=params.description,
            priority=params.priority,
            category_id=params.category_id,
            due_date=params.due_date,
            created_at=now,
        )

    def apply_update(self, params: Any, now: datetime) -> "Task":
        """Return a copy with every provided (non-None) field of ``params`` applied."""
        changes: Dict[str, Any] = {"updated_at": max(now, self.created_at)}
        for name in ("title", "description", "priority", "category_id", "due_date", "completed"):
            value = getattr(params, name, None)
            if value is not None:
                changes[name] = value
        return replace(self, **changes)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "categoryId": self.category_id,
            "dueDate": format_timestamp(self.due_date),
            "completed": self.completed,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Task":
        return cls(
            id=str(payload.get("id") or ""),
            title=str(payload.get("title") or ""),
            description=payload.get("description"),
            priority=TaskPriority.parse(payload.get("priority")),
            category_id=_nested_id(payload, "categoryId", "category"),
            due_date=parse_optional_timestamp(payload.get("dueDate")),
            completed=bool(payload.get("completed", False)),
            created_at=parse_timestamp(payload.get("createdAt")),
            updated_at=parse_optional_timestamp(payload.get("updatedAt")),
        )


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    color: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        _check_identity(self, "Category")

    @classmethod
    def from_create(cls, category_id: str, params: Any, now: datetime) -> "Category":
        return cls(id=category_id, name=params.name, color=params.color, created_at=now)

    def apply_update(self, params: Any, now: datetime) -> "Category":
        changes: Dict[str, Any] = {"updated_at": max(now, self.created_at)}
        for name in ("name", "color"):
            value = getattr(params, name, None)
            if value is not None:
                changes[name] = value
        return replace(self, **changes)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Category":
        return cls(
            id=str(payload.get("id") or ""),
            name=str(payload.get("name") or ""),
            color=str(payload.get("color") or ""),
            created_at=parse_timestamp(payload.get("createdAt")),
            updated_at=parse_optional_timestamp(payload.get("updatedAt")),
        )


@dataclass(frozen=True)
class Feedback:
    id: str
    rating: int
    created_at: datetime
    comment: Optional[str] = None
    category: FeedbackCategory = FeedbackCategory.GENERAL
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "category", FeedbackCategory.parse(self.category))
        _check_identity(self, "Feedback")

    @classmethod
    def from_create(cls, feedback_id: str, params: Any, now: datetime) -> "Feedback":
        return cls(
            id=feedback_id,
            rating=params.rating,
            comment=params.comment,
            category=params.category,
            created_at=now,
        )

    def apply_update(self, params: Any, now: datetime) -> "Feedback":
        changes: Dict[str, Any] = {"updated_at": max(now, self.created_at)}
        for name in ("rating", "comment", "category"):
            value = getattr(params, name, None)
            if value is not None:
                changes[name] = value
        return replace(self, **changes)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "rating": self.rating,
            "comment": self.comment,
            "category": self.category.value,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Feedback":
        return cls(
            id=str(payload.get("id") or ""),
            rating=int(payload.get("rating") or 0),
            comment=payload.get("comment"),
            category=FeedbackCategory.parse(payload.get("category")),
            created_at=parse_timestamp(payload.get("createdAt")),
            updated_at=parse_optional_timestamp(payload.get("updatedAt")),
        )


@dataclass(frozen=True)
class User:
    id: str
    phone_number: str
    created_at: datetime
    name: Optional[str] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        _check_identity(self, "User")

    @classmethod
    def from_create(cls, user_id: str, params: Any, now: datetime) -> "User":
        return cls(id=user_id, phone_number=params.phone_number, name=params.name, created_at=now)

    def apply_update(self, params: Any, now: datetime) -> "User":
        changes: Dict[str, Any] = {"updated_at": max(now, self.created_at)}
        for name in ("phone_number", "name"):
            value = getattr(params, name, None)
            if value is not None:
                changes[name] = value
        return replace(self, **changes)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "phoneNumber": self.phone_number,
            "name": self.name,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "User":
        return cls(
            id=str(payload.get("id") or ""),
            phone_number=str(payload.get("phoneNumber") or ""),
            name=payload.get("name"),
            created_at=parse_timestamp(payload.get("createdAt")),
            updated_at=parse_optional_timestamp(payload.get("updatedAt")),
        )


CURRENT_SESSION_ID = "current"


@dataclass(frozen=True)
class AuthSession:
    """Credentials issued by ``auth/verify-otp``.

    The local store keeps at most one session, under ``CURRENT_SESSION_ID``.
    ``expires_in`` is in seconds; ``0`` means the server gave no lifetime.
    """

    token: str
    created_at: datetime
    user: Optional[User] = None
    refresh_token: Optional[str] = None
    expires_in: int = 0
    id: str = CURRENT_SESSION_ID
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        _check_identity(self, "Session")
        if not isinstance(self.token, str) or not self.token.strip():
            raise ValueError("Session token must be a non-empty string.")
        if self.expires_in < 0:
            raise ValueError("Session expires_in must be non-negative.")

    @property
    def expires_at(self) -> Optional[datetime]:
        if not self.expires_in:
            return None
        return self.created_at + timedelta(seconds=self.expires_in)

    def is_expired(self, now: datetime) -> bool:
        expires_at = self.expires_at
        return expires_at is not None and now >= expires_at

    @classmethod
    def from_verification(
        cls, payload: Mapping[str, Any], phone_number: str, now: datetime
    ) -> "AuthSession":
        """Session from a ``verify-otp`` response body's ``data``."""
        raw_user = payload.get("user")
        raw_user = raw_user if isinstance(raw_user, Mapping) else {}
        user = User(
            id=str(raw_user.get("id") or ""),
            phone_number=str(raw_user.get("phoneNumber") or phone_number),
            name=raw_user.get("name"),
            created_at=parse_optional_timestamp(raw_user.get("createdAt")) or now,
        )
        return cls(
            token=str(payload.get("token") or ""),
            user=user,
            created_at=now,
            refresh_token=payload.get("refreshToken") or None,
            expires_in=int(payload.get("expiresIn") or 0),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "token": self.token,
            "refreshToken": self.refresh_token,
            "expiresIn": self.expires_in,
            "user": self.user.to_payload() if self.user else None,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "AuthSession":
        raw_user = payload.get("user")
        return cls(
            id=str(payload.get("id") or CURRENT_SESSION_ID),
            token=str(payload.get("token") or ""),
            refresh_token=payload.get("refreshToken"),
            expires_in=int(payload.get("expiresIn") or 0),
            user=User.from_payload(raw_user) if raw_user else None,
            created_at=parse_timestamp(payload.get("createdAt")),
            updated_at=parse_optional_timestamp(payload.get("updatedAt")),
        )


E = TypeVar("E")


@dataclass(frozen=True)
class CacheEntry(Generic[E]):
    """Entity plus the moment it was written to the local store."""

    entity: E
    cached_at: datetime

    def age(self, now: datetime) -> timedelta:
        return now - self.cached_at

    def is_fresh(self, now: datetime, ttl: timedelta) -> bool:
        return self.age(now) <= ttl


ENTITY_TYPES: Dict[str, Type[Any]] = {
    "tasks": Task,
    "categories": Category,
    "feedback": Feedback,
    "users": User,
    "auth": AuthSession,
}


__all__ = [
    "AuthSession",
    "CURRENT_SESSION_ID",
    "CacheEntry",
    "Category",
    "ENTITY_TYPES",
    "Feedback",
    "FeedbackCategory",
    "Task",
    "TaskPriority",
    "User",
]
