"""Domain package exports for entities, outcomes and parameter objects."""

from .entities import (
    CacheEntry,
    Category,
    Feedback,
    FeedbackCategory,
    Task,
    TaskPriority,
    User,
)
from .errors import AppError, ErrorKind
from .outcome import LOADING, Error, Loading, Outcome, Success
from .params import (
    CreateCategoryParams,
    CreateTaskParams,
    CreateUserParams,
    ListQueryParams,
    SortOrder,
    SubmitFeedbackParams,
    TaskQueryParams,
    TaskSortBy,
    UpdateCategoryParams,
    UpdateFeedbackParams,
    UpdateTaskParams,
    UpdateUserParams,
)

__all__ = [
    "AppError",
    "CacheEntry",
    "Category",
    "CreateCategoryParams",
    "CreateTaskParams",
    "CreateUserParams",
    "Error",
    "ErrorKind",
    "Feedback",
    "FeedbackCategory",
    "LOADING",
    "ListQueryParams",
    "Loading",
    "Outcome",
    "SortOrder",
    "SubmitFeedbackParams",
    "Success",
    "Task",
    "TaskPriority",
    "TaskQueryParams",
    "TaskSortBy",
    "UpdateCategoryParams",
    "UpdateFeedbackParams",
    "UpdateTaskParams",
    "UpdateUserParams",
    "User",
]
