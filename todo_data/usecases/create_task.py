from __future__ import annotations

from dataclasses import dataclass, field

from todo_data.domain.entities import Task
from todo_data.domain.errors import ErrorKind
from todo_data.domain.outcome import Error, Outcome
from todo_data.domain.params import CreateTaskParams
from todo_data.domain.validation import TaskValidator
from todo_data.usecases.task_repository import TaskRepository


@dataclass
class CreateTask:
    """Re-check task rules (the due date may have passed since construction), then create."""

    repository: TaskRepository
    validator: TaskValidator = field(default_factory=TaskValidator)

    async def __call__(self, params: CreateTaskParams) -> Outcome[Task]:
        result = self.validator.validate_create(params)
        if not result.valid:
            return Error(ErrorKind.VALIDATION, result.message)
        return await self.repository.create(params)
