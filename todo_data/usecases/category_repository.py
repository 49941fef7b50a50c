from __future__ import annotations

from typing import Any, Callable, Iterable, List

from todo_data.domain.entities import Category, Task
from todo_data.usecases.cache_aside import CacheAsideRepository


def _tasks_in_category(category_id: str) -> Callable[[Task], bool]:
    return lambda task: task.category_id == category_id


class CategoryRepository(CacheAsideRepository[Category]):
    """Categories ordered by name; deleting one evicts its cached tasks."""

    collection = "categories"

    def order(self, entities: Iterable[Category]) -> List[Category]:
        ordered = sorted(entities, key=lambda category: category.id)
        ordered.sort(key=lambda category: category.name.lower())
        return ordered

    def link_tasks(self, tasks: CacheAsideRepository[Any]) -> None:
        self.add_dependent(tasks, _tasks_in_category)


__all__ = ["CategoryRepository"]
