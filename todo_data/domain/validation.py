"""Field rules and aggregate validators.

Parameter objects in :mod:`todo_data.domain.params` raise on the first rule
that fails; the validators here run the same rules and collect every message
in field-check order so forms can show all problems at once.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple

from todo_data.domain.errors import ValidationError
from todo_data.domain.time_utils import parse_optional_timestamp, utc_now

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
SEARCH_MAX_LENGTH = 50
PAGE_SIZE_MAX = 100
CATEGORY_NAME_MAX_LENGTH = 50
COMMENT_MAX_LENGTH = 1000
NAME_MAX_LENGTH = 100
RATING_MIN = 1
RATING_MAX = 5
OTP_LENGTH = 6

_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")
_PHONE_RE = re.compile(r"^\d{7,15}$")
_OTP_RE = re.compile(r"^\d{%d}$" % OTP_LENGTH)


def is_blank(value: Any) -> bool:
    """True for ``None`` and whitespace-only strings."""
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


# ---- Field rules (return a message or None) ----
def check_id(value: Any, label: str = "Task") -> Optional[str]:
    if is_blank(value):
        return f"{label} ID cannot be empty"
    return None


def check_title(title: Any) -> Optional[str]:
    if is_blank(title):
        return "Title cannot be empty"
    if len(str(title)) > TITLE_MAX_LENGTH:
        return f"Title cannot exceed {TITLE_MAX_LENGTH} characters"
    return None


def check_description(description: Any) -> Optional[str]:
    if description is not None and len(str(description)) > DESCRIPTION_MAX_LENGTH:
        return f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters"
    return None


def check_due_date(due_date: Optional[datetime], now: datetime) -> Optional[str]:
    if due_date is not None and due_date < now:
        return "Due date cannot be in the past"
    return None


def check_page(page: Any) -> Optional[str]:
    if not isinstance(page, int) or isinstance(page, bool) or page <= 0:
        return "Page must be greater than 0"
    return None


def check_limit(limit: Any) -> Optional[str]:
    if (
        not isinstance(limit, int)
        or isinstance(limit, bool)
        or limit < 1
        or limit > PAGE_SIZE_MAX
    ):
        return f"Limit must be between 1 and {PAGE_SIZE_MAX}"
    return None


def check_search(search: Any) -> Optional[str]:
    if search is not None and len(str(search)) > SEARCH_MAX_LENGTH:
        return f"Search query cannot exceed {SEARCH_MAX_LENGTH} characters"
    return None


def check_category_name(name: Any) -> Optional[str]:
    if is_blank(name):
        return "Category name cannot be empty"
    if len(str(name)) > CATEGORY_NAME_MAX_LENGTH:
        return f"Category name cannot exceed {CATEGORY_NAME_MAX_LENGTH} characters"
    return None


def check_color(color: Any) -> Optional[str]:
    if is_blank(color):
        return "Color cannot be empty"
    if not _COLOR_RE.match(str(color)):
        return "Invalid color format (use #RRGGBB)"
    return None


def check_rating(rating: Any) -> Optional[str]:
    if not isinstance(rating, int) or isinstance(rating, bool) or rating < RATING_MIN:
        return f"Rating must be at least {RATING_MIN}"
    if rating > RATING_MAX:
        return f"Rating cannot exceed {RATING_MAX}"
    return None


def check_comment(comment: Any) -> Optional[str]:
    if comment is not None and len(str(comment)) > COMMENT_MAX_LENGTH:
        return f"Comment cannot exceed {COMMENT_MAX_LENGTH} characters"
    return None


def check_phone_number(phone: Any) -> Optional[str]:
    if is_blank(phone):
        return "Phone number cannot be empty"
    if not _PHONE_RE.match(str(phone).strip()):
        return "Invalid phone number format"
    return None


def check_name(name: Any) -> Optional[str]:
    if is_blank(name):
        return "Name cannot be empty"
    if len(str(name)) > NAME_MAX_LENGTH:
        return f"Name cannot exceed {NAME_MAX_LENGTH} characters"
    return None


def check_otp(otp: Any) -> Optional[str]:
    if is_blank(otp):
        return "OTP cannot be empty"
    if not _OTP_RE.match(str(otp).strip()):
        return f"OTP must be {OTP_LENGTH} digits"
    return None


def first_failure(messages: Iterable[Optional[str]]) -> None:
    """Raise ``ValueError`` for the first non-empty message."""
    for message in messages:
        if message:
            raise ValueError(message)


# ---- Aggregate results ----
@dataclass(frozen=True)
class ValidationResult:
    """Outcome of an aggregate validation pass."""

    valid: bool
    errors: Tuple[str, ...] = ()

    @classmethod
    def of(cls, messages: Iterable[Optional[str]]) -> "ValidationResult":
        errors = tuple(message for message in messages if message)
        return cls(valid=not errors, errors=errors)

    @property
    def message(self) -> str:
        return ", ".join(self.errors)

    def raise_if_invalid(self) -> None:
        if not self.valid:
            raise ValidationError(self.message)


def _field(data: Any, name: str, alias: Optional[str] = None) -> Any:
    if isinstance(data, Mapping):
        if name in data:
            return data[name]
        if alias is not None:
            return data.get(alias)
        return None
    return getattr(data, name, None)


def _due_date(data: Any) -> Tuple[Optional[datetime], Optional[str]]:
    raw = _field(data, "due_date", "dueDate")
    try:
        return parse_optional_timestamp(raw), None
    except ValueError:
        return None, "Invalid due date format"


class TaskValidator:
    """Collects every task rule violation in field-check order.

    Accepts constructed parameter objects (to re-check rules that depend on
    the clock, such as due dates) or raw field mappings from form input.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock

    def _due_date_messages(self, data: Any) -> List[Optional[str]]:
        due_date, parse_error = _due_date(data)
        if parse_error:
            return [parse_error]
        return [check_due_date(due_date, self._clock())]

    def validate_create(self, data: Any) -> ValidationResult:
        messages: List[Optional[str]] = [
            check_title(_field(data, "title")),
            check_description(_field(data, "description")),
        ]
        messages.extend(self._due_date_messages(data))
        return ValidationResult.of(messages)

    def validate_update(self, data: Any) -> ValidationResult:
        title = _field(data, "title")
        messages: List[Optional[str]] = [
            check_id(_field(data, "id")),
            check_title(title) if title is not None else None,
            check_description(_field(data, "description")),
        ]
        messages.extend(self._due_date_messages(data))
        return ValidationResult.of(messages)

    def validate_query(self, data: Any) -> ValidationResult:
        page = _field(data, "page")
        limit = _field(data, "limit")
        return ValidationResult.of(
            [
                check_page(1 if page is None else page),
                check_limit(20 if limit is None else limit),
                check_search(_field(data, "search")),
            ]
        )


class CategoryValidator:
    def validate_create(self, data: Any) -> ValidationResult:
        return ValidationResult.of(
            [check_category_name(_field(data, "name")), check_color(_field(data, "color"))]
        )

    def validate_update(self, data: Any) -> ValidationResult:
        name = _field(data, "name")
        color = _field(data, "color")
        return ValidationResult.of(
            [
                check_id(_field(data, "id"), "Category"),
                check_category_name(name) if name is not None else None,
                check_color(color) if color is not None else None,
            ]
        )


class FeedbackValidator:
    def validate_submit(self, data: Any) -> ValidationResult:
        return ValidationResult.of(
            [check_rating(_field(data, "rating")), check_comment(_field(data, "comment"))]
        )

    def validate_update(self, data: Any) -> ValidationResult:
        rating = _field(data, "rating")
        return ValidationResult.of(
            [
                check_id(_field(data, "id"), "Feedback"),
                check_rating(rating) if rating is not None else None,
                check_comment(_field(data, "comment")),
            ]
        )


class UserValidator:
    def validate_create(self, data: Any) -> ValidationResult:
        name = _field(data, "name")
        return ValidationResult.of(
            [
                check_phone_number(_field(data, "phone_number", "phoneNumber")),
                check_name(name) if name is not None else None,
            ]
        )

    def validate_update(self, data: Any) -> ValidationResult:
        phone = _field(data, "phone_number", "phoneNumber")
        name = _field(data, "name")
        return ValidationResult.of(
            [
                check_id(_field(data, "id"), "User"),
                check_phone_number(phone) if phone is not None else None,
                check_name(name) if name is not None else None,
            ]
        )


__all__ = [
    "CATEGORY_NAME_MAX_LENGTH",
    "COMMENT_MAX_LENGTH",
    "CategoryValidator",
    "DESCRIPTION_MAX_LENGTH",
    "FeedbackValidator",
    "OTP_LENGTH",
    "PAGE_SIZE_MAX",
    "SEARCH_MAX_LENGTH",
    "TITLE_MAX_LENGTH",
    "TaskValidator",
    "UserValidator",
    "ValidationResult",
    "check_category_name",
    "check_color",
    "check_comment",
    "check_description",
    "check_due_date",
    "check_id",
    "check_limit",
    "check_name",
    "check_otp",
    "check_page",
    "check_phone_number",
    "check_rating",
    "check_search",
    "check_title",
    "first_failure",
    "is_blank",
]
