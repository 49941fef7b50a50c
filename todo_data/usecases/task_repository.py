from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from todo_data.domain.entities import Task, TaskPriority
from todo_data.domain.errors import ErrorKind
from todo_data.domain.outcome import Error, Outcome, Success
from todo_data.domain.params import TaskQueryParams, UpdateTaskParams
from todo_data.domain.validation import check_id
from todo_data.usecases.cache_aside import CacheAsideRepository


@dataclass(frozen=True)
class TaskAnalytics:
    """Counts over the locally cached tasks."""

    total: int
    completed: int
    pending: int
    overdue: int
    completion_rate: float
    by_priority: Dict[TaskPriority, int] = field(default_factory=dict)

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task], now: datetime) -> "TaskAnalytics":
        tasks = list(tasks)
        total = len(tasks)
        completed = sum(1 for task in tasks if task.completed)
        by_priority = {priority: 0 for priority in TaskPriority}
        for task in tasks:
            by_priority[task.priority] += 1
        return cls(
            total=total,
            completed=completed,
            pending=total - completed,
            overdue=sum(1 for task in tasks if task.is_overdue(now)),
            completion_rate=(completed / total * 100.0) if total else 0.0,
            by_priority=by_priority,
        )


class BulkOperation(str, Enum):
    DELETE = "delete"
    COMPLETE = "complete"
    UPDATE = "update"


_BULK_VERBS = {
    BulkOperation.DELETE: "Deleted",
    BulkOperation.COMPLETE: "Completed",
    BulkOperation.UPDATE: "Updated",
}


@dataclass(frozen=True)
class BulkResult:
    """Per-task outcomes of one bulk operation, in request order."""

    operation: BulkOperation
    outcomes: Dict[str, Outcome[Any]]

    @property
    def succeeded(self) -> List[str]:
        return [task_id for task_id, outcome in self.outcomes.items() if outcome.is_success()]

    @property
    def failed(self) -> Dict[str, Error]:
        return {
            task_id: outcome
            for task_id, outcome in self.outcomes.items()
            if isinstance(outcome, Error)
        }

    @property
    def messages(self) -> List[str]:
        verb = _BULK_VERBS[self.operation]
        return [f"{verb} task {task_id}" for task_id in self.succeeded]


class TaskRepository(CacheAsideRepository[Task]):
    """Cache-aside access to tasks with local filtering, sorting and paging."""

    collection = "tasks"

    def default_query(self) -> TaskQueryParams:
        return TaskQueryParams(limit=self.config.default_page_size)

    def listing_query(self, page: int) -> TaskQueryParams:
        return TaskQueryParams(page=page, limit=self.config.max_page_size)

    def evaluate(self, query: Any, entities: Iterable[Task]) -> List[Task]:
        if isinstance(query, TaskQueryParams):
            return query.select(entities)
        return super().evaluate(query, entities)

    async def complete(self, task_id: str) -> Outcome[Task]:
        """Mark a task completed through ``PATCH tasks/{id}/complete`` when available."""
        message = check_id(task_id)
        if message:
            return Error(ErrorKind.VALIDATION, message)
        if hasattr(self.remote, "complete"):

            def apply(task: Task) -> Outcome[Task]:
                if task.id != task_id:
                    return Error(
                        ErrorKind.SERVER,
                        f"Update response id {task.id!r} does not match requested id {task_id!r}",
                    )
                return self._apply_put(task)

            return await self._write(apply, self.remote.complete, task_id)
        return await self.update(UpdateTaskParams(id=task_id, completed=True))

    async def search(self, text: str) -> Outcome[List[Task]]:
        """Tasks whose title or description contains ``text``.

        Answered by ``GET tasks/search`` when the remote offers it, otherwise
        by the filtered listing. Either way the result is cached under the
        equivalent ``TaskQueryParams(search=text)``.
        """
        try:
            query = TaskQueryParams(search=text, limit=self.config.max_page_size)
        except ValueError as exc:
            return Error(ErrorKind.VALIDATION, str(exc))
        if hasattr(self.remote, "search"):
            return await self._read(query, self.remote.search, text)
        return await self.read(query)

    async def bulk(
        self,
        operation: Union[BulkOperation, str],
        task_ids: Sequence[str],
        *,
        category_id: Optional[str] = None,
        priority: Optional[TaskPriority] = None,
    ) -> Outcome[BulkResult]:
        """Apply ``operation`` to each of ``task_ids`` in order.

        Every id goes through the ordinary remote-first write, so one failing
        task does not stop the rest. Input problems are reported before any
        remote call.
        """
        try:
            op = BulkOperation(operation)
        except ValueError:
            return Error(ErrorKind.VALIDATION, f"Unsupported bulk operation: {operation}")
        ids = list(task_ids)
        if not ids:
            return Error(ErrorKind.VALIDATION, "Task IDs cannot be empty")
        message = next((m for m in (check_id(task_id) for task_id in ids) if m), None)
        if message:
            return Error(ErrorKind.VALIDATION, message)
        if op is BulkOperation.UPDATE and category_id is None and priority is None:
            return Error(ErrorKind.VALIDATION, "Bulk update needs a category or a priority")
        if priority is not None:
            try:
                priority = TaskPriority.parse(priority)
            except ValueError:
                return Error(ErrorKind.VALIDATION, f"Invalid priority: {priority}")

        outcomes: Dict[str, Outcome[Any]] = {}
        for task_id in ids:
            if op is BulkOperation.DELETE:
                outcomes[task_id] = await self.delete(task_id)
            elif op is BulkOperation.COMPLETE:
                outcomes[task_id] = await self.complete(task_id)
            else:
                params = UpdateTaskParams(id=task_id, category_id=category_id, priority=priority)
                outcomes[task_id] = await self.update(params)
        result = BulkResult(op, outcomes)
        self._log.info(
            "%s: bulk %s processed %d tasks, %d failed",
            self.collection,
            op.value,
            len(ids),
            len(result.failed),
        )
        return Success(result)

    def analytics(self) -> Outcome[TaskAnalytics]:
        """Completion statistics over every cached task; ``stale`` if any row expired."""
        now = self._clock()
        ttl = self.config.cache_expiry
        entries = self.store.all(self.collection)
        stale = any(not entry.is_fresh(now, ttl) for entry in entries)
        return Success(
            TaskAnalytics.from_tasks((entry.entity for entry in entries), now),
            stale=stale,
        )


__all__ = ["BulkOperation", "BulkResult", "TaskAnalytics", "TaskRepository"]
