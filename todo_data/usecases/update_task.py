from __future__ import annotations

from dataclasses import dataclass, field

from todo_data.domain.entities import Task
from todo_data.domain.errors import ErrorKind
from todo_data.domain.outcome import Error, Outcome
from todo_data.domain.params import UpdateTaskParams
from todo_data.domain.validation import TaskValidator
from todo_data.usecases.task_repository import TaskRepository


@dataclass
class UpdateTask:
    repository: TaskRepository
    validator: TaskValidator = field(default_factory=TaskValidator)

    async def __call__(self, params: UpdateTaskParams) -> Outcome[Task]:
        result = self.validator.validate_update(params)
        if not result.valid:
            return Error(ErrorKind.VALIDATION, result.message)
        return await self.repository.update(params)
