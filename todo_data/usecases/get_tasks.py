from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from todo_data.domain.entities import Task
from todo_data.domain.params import TaskQueryParams
from todo_data.usecases.subscription import Subscription
from todo_data.usecases.task_repository import TaskRepository


@dataclass
class GetTasks:
    """Live task list for a query (first page of the default listing when omitted)."""

    repository: TaskRepository

    def __call__(self, query: Optional[TaskQueryParams] = None) -> Subscription[List[Task]]:
        return self.repository.get(query)
