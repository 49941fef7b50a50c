from __future__ import annotations

from dataclasses import dataclass

from todo_data.domain.errors import ErrorKind
from todo_data.domain.outcome import Error, Outcome
from todo_data.domain.validation import check_id
from todo_data.usecases.task_repository import TaskRepository


@dataclass
class DeleteTask:
    repository: TaskRepository

    async def __call__(self, task_id: str) -> Outcome[None]:
        message = check_id(task_id)
        if message:
            return Error(ErrorKind.VALIDATION, message)
        return await self.repository.delete(task_id)
