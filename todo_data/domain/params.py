"""Request parameter objects.

Each object validates itself in ``__post_init__`` and raises ``ValueError``
with the first failing rule's message, so an invalid request can never be
constructed and handed to a repository.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, TypeVar

from todo_data.domain.entities import FeedbackCategory, Task, TaskPriority
from todo_data.domain.time_utils import format_timestamp, parse_timestamp, utc_now
from todo_data.domain.validation import (
    check_category_name,
    check_color,
    check_comment,
    check_description,
    check_due_date,
    check_id,
    check_limit,
    check_name,
    check_otp,
    check_page,
    check_phone_number,
    check_rating,
    check_search,
    check_title,
    first_failure,
)


class TaskSortBy(str, Enum):
    TITLE = "title"
    PRIORITY = "priority"
    DUE_DATE = "dueDate"
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


_SORT_ATTRS = {
    TaskSortBy.TITLE: "title",
    TaskSortBy.PRIORITY: "priority",
    TaskSortBy.DUE_DATE: "due_date",
    TaskSortBy.CREATED_AT: "created_at",
    TaskSortBy.UPDATED_AT: "updated_at",
}

E = TypeVar("E")


def _normalize_due_date(params: Any) -> None:
    if params.due_date is not None:
        object.__setattr__(params, "due_date", parse_timestamp(params.due_date))


def _compact(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}


def _stripped(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


@dataclass(frozen=True)
class CreateTaskParams:
    title: str
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    category_id: Optional[str] = None
    due_date: Optional[datetime] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "priority", TaskPriority.parse(self.priority))
        _normalize_due_date(self)
        first_failure(
            [
                check_title(self.title),
                check_description(self.description),
                check_due_date(self.due_date, utc_now()),
            ]
        )

    def to_payload(self) -> Dict[str, Any]:
        return _compact(
            {
                "title": self.title,
                "description": self.description,
                "priority": self.priority.value,
                "categoryId": self.category_id,
                "dueDate": format_timestamp(self.due_date),
            }
        )


@dataclass(frozen=True)
class UpdateTaskParams:
    """Partial task update; ``None`` fields are left unchanged."""

    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    category_id: Optional[str] = None
    due_date: Optional[datetime] = None
    completed: Optional[bool] = None

    def __post_init__(self) -> None:
        if self.priority is not None:
            object.__setattr__(self, "priority", TaskPriority.parse(self.priority))
        _normalize_due_date(self)
        first_failure(
            [
                check_id(self.id),
                check_title(self.title) if self.title is not None else None,
                check_description(self.description),
                check_due_date(self.due_date, utc_now()),
            ]
        )

    def to_payload(self) -> Dict[str, Any]:
        return _compact(
            {
                "title": self.title,
                "description": self.description,
                "priority": self.priority.value if self.priority else None,
                "categoryId": self.category_id,
                "dueDate": format_timestamp(self.due_date),
                "completed": self.completed,
            }
        )


@dataclass(frozen=True)
class TaskQueryParams:
    """Filter, sort and page selection for task lists."""

    page: int = 1
    limit: int = 20
    priority: Optional[TaskPriority] = None
    category_id: Optional[str] = None
    due_date: Optional[datetime] = None
    completed: Optional[bool] = None
    search: Optional[str] = None
    sort_by: TaskSortBy = TaskSortBy.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC

    def __post_init__(self) -> None:
        if self.priority is not None:
            object.__setattr__(self, "priority", TaskPriority.parse(self.priority))
        object.__setattr__(self, "sort_by", TaskSortBy(self.sort_by))
        object.__setattr__(self, "sort_order", SortOrder(self.sort_order))
        _normalize_due_date(self)
        first_failure(
            [
                check_page(self.page),
                check_limit(self.limit),
                check_search(self.search),
            ]
        )

    def to_query(self) -> Dict[str, Any]:
        """Query-string parameters for ``GET tasks``."""
        query = _compact(
            {
                "page": self.page,
                "limit": self.limit,
                "priority": self.priority.value if self.priority else None,
                "category": self.category_id,
                "dueDate": format_timestamp(self.due_date),
                "completed": None if self.completed is None else str(self.completed).lower(),
                "search": self.search,
                "sortBy": self.sort_by.value,
                "sortOrder": self.sort_order.value,
            }
        )
        return query

    # ---- Local evaluation ----
    def filter_key(self) -> "TaskQueryParams":
        """Same filter and ordering, first page; groups the pages of one listing."""
        return replace(self, page=1)

    def matches(self, task: Task) -> bool:
        if self.priority is not None and task.priority is not self.priority:
            return False
        if self.category_id is not None and task.category_id != self.category_id:
            return False
        if self.completed is not None and task.completed != self.completed:
            return False
        if self.due_date is not None:
            if task.due_date is None or task.due_date.date() != self.due_date.date():
                return False
        if self.search and self.search.strip():
            needle = self.search.strip().lower()
            haystack = [task.title, task.description or ""]
            if not any(needle in text.lower() for text in haystack):
                return False
        return True

    def sort(self, tasks: Iterable[Task]) -> List[Task]:
        attr = _SORT_ATTRS[self.sort_by]
        present: List[Task] = []
        missing: List[Task] = []
        for task in tasks:
            (missing if getattr(task, attr) is None else present).append(task)

        def key(task: Task) -> Any:
            value = getattr(task, attr)
            if isinstance(value, TaskPriority):
                value = value.weight
            elif isinstance(value, str):
                value = value.lower()
            return value

        # stable sorts: id tie-break first, then the requested field
        present.sort(key=lambda task: task.id)
        present.sort(key=key, reverse=self.sort_order is SortOrder.DESC)
        missing.sort(key=lambda task: task.id)
        return present + missing

    def select(self, tasks: Iterable[Task]) -> List[Task]:
        """Filter, sort and cut out this query's page."""
        ordered = self.sort(task for task in tasks if self.matches(task))
        start = (self.page - 1) * self.limit
        return ordered[start : start + self.limit]


@dataclass(frozen=True)
class ListQueryParams:
    """Page selection for collections without filters."""

    page: int = 1
    limit: int = 20

    def __post_init__(self) -> None:
        first_failure([check_page(self.page), check_limit(self.limit)])

    def to_query(self) -> Dict[str, Any]:
        return {"page": self.page, "limit": self.limit}

    def filter_key(self) -> "ListQueryParams":
        return replace(self, page=1)

    def select(self, items: Sequence[E]) -> List[E]:
        """Page slice of an already ordered sequence."""
        start = (self.page - 1) * self.limit
        return list(items[start : start + self.limit])


@dataclass(frozen=True)
class CreateCategoryParams:
    name: str
    color: str

    def __post_init__(self) -> None:
        first_failure([check_category_name(self.name), check_color(self.color)])

    def to_payload(self) -> Dict[str, Any]:
        return {"name": self.name, "color": self.color}


@dataclass(frozen=True)
class UpdateCategoryParams:
    id: str
    name: Optional[str] = None
    color: Optional[str] = None

    def __post_init__(self) -> None:
        first_failure(
            [
                check_id(self.id, "Category"),
                check_category_name(self.name) if self.name is not None else None,
                check_color(self.color) if self.color is not None else None,
            ]
        )

    def to_payload(self) -> Dict[str, Any]:
        return _compact({"name": self.name, "color": self.color})


@dataclass(frozen=True)
class SubmitFeedbackParams:
    rating: int
    comment: Optional[str] = None
    category: FeedbackCategory = FeedbackCategory.GENERAL

    def __post_init__(self) -> None:
        object.__setattr__(self, "category", FeedbackCategory.parse(self.category))
        first_failure([check_rating(self.rating), check_comment(self.comment)])

    def to_payload(self) -> Dict[str, Any]:
        return _compact(
            {"rating": self.rating, "comment": self.comment, "category": self.category.value}
        )


@dataclass(frozen=True)
class UpdateFeedbackParams:
    id: str
    rating: Optional[int] = None
    comment: Optional[str] = None
    category: Optional[FeedbackCategory] = None

    def __post_init__(self) -> None:
        if self.category is not None:
            object.__setattr__(self, "category", FeedbackCategory.parse(self.category))
        first_failure(
            [
                check_id(self.id, "Feedback"),
                check_rating(self.rating) if self.rating is not None else None,
                check_comment(self.comment),
            ]
        )

    def to_payload(self) -> Dict[str, Any]:
        return _compact(
            {
                "rating": self.rating,
                "comment": self.comment,
                "category": self.category.value if self.category else None,
            }
        )


@dataclass(frozen=True)
class CreateUserParams:
    phone_number: str
    name: Optional[str] = None

    def __post_init__(self) -> None:
        first_failure(
            [
                check_phone_number(self.phone_number),
                check_name(self.name) if self.name is not None else None,
            ]
        )

    def to_payload(self) -> Dict[str, Any]:
        return _compact({"phoneNumber": self.phone_number, "name": self.name})


@dataclass(frozen=True)
class UpdateUserParams:
    id: str
    phone_number: Optional[str] = None
    name: Optional[str] = None

    def __post_init__(self) -> None:
        first_failure(
            [
                check_id(self.id, "User"),
                check_phone_number(self.phone_number) if self.phone_number is not None else None,
                check_name(self.name) if self.name is not None else None,
            ]
        )

    def to_payload(self) -> Dict[str, Any]:
        return _compact({"phoneNumber": self.phone_number, "name": self.name})


@dataclass(frozen=True)
class LoginParams:
    phone_number: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "phone_number", _stripped(self.phone_number))
        first_failure([check_phone_number(self.phone_number)])

    def to_payload(self) -> Dict[str, Any]:
        return {"phoneNumber": self.phone_number}


@dataclass(frozen=True)
class VerifyOtpParams:
    phone_number: str
    otp: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "phone_number", _stripped(self.phone_number))
        object.__setattr__(self, "otp", _stripped(self.otp))
        first_failure([check_phone_number(self.phone_number), check_otp(self.otp)])

    def to_payload(self) -> Dict[str, Any]:
        return {"phoneNumber": self.phone_number, "otp": self.otp}


__all__ = [
    "CreateCategoryParams",
    "CreateTaskParams",
    "CreateUserParams",
    "ListQueryParams",
    "LoginParams",
    "SortOrder",
    "SubmitFeedbackParams",
    "TaskQueryParams",
    "TaskSortBy",
    "UpdateCategoryParams",
    "UpdateFeedbackParams",
    "UpdateTaskParams",
    "UpdateUserParams",
    "VerifyOtpParams",
]
