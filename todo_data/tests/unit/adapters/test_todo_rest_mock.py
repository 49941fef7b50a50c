from datetime import datetime, timedelta, timezone

import pytest

from todo_data.adapters.api_errors import ApiClientError, ApiTimeoutError
from todo_data.adapters.todo_rest_mock import TaskRemoteMock, category_remote_mock
from todo_data.domain.entities import Category, Task
from todo_data.domain.params import (
    CreateTaskParams,
    ListQueryParams,
    TaskQueryParams,
    UpdateTaskParams,
)

BASE = datetime(2030, 1, 1, tzinfo=timezone.utc)


def test_task_mock_crud_and_paging():
    remote = TaskRemoteMock(clock=lambda: BASE + timedelta(hours=1))
    remote.seed(*[Task(id=f"t{i}", title=f"Task {i}", created_at=BASE + timedelta(minutes=i)) for i in range(3)])

    created = remote.create(CreateTaskParams(title="Fresh"))
    updated = remote.update(UpdateTaskParams(id="t0", completed=True))
    remote.delete("t1")

    page = remote.fetch(TaskQueryParams(limit=2))
    assert [task.id for task in page] == [created.id, "t2"]
    assert updated.completed is True and updated.updated_at == BASE + timedelta(hours=1)
    assert remote.fetch_by_id("t0") == updated
    assert remote.calls["fetch"] == 1


def test_missing_ids_raise_404():
    remote = TaskRemoteMock()

    with pytest.raises(ApiClientError) as info:
        remote.fetch_by_id("ghost")
    assert info.value.status == 404
    with pytest.raises(ApiClientError):
        remote.complete("ghost")


def test_scripted_failures_are_raised_in_order():
    remote = TaskRemoteMock()
    remote.fail_with(ApiTimeoutError("slow"))

    with pytest.raises(ApiTimeoutError):
        remote.fetch(TaskQueryParams())
    assert remote.fetch(TaskQueryParams()) == []


def test_category_mock_orders_by_name_and_pages():
    remote = category_remote_mock(lambda: BASE)
    remote.seed(
        Category(id="c1", name="zeta", color="#000000", created_at=BASE),
        Category(id="c2", name="Alpha", color="#000000", created_at=BASE),
        Category(id="c3", name="mid", color="#000000", created_at=BASE),
    )

    assert [c.name for c in remote.fetch(ListQueryParams(page=2, limit=2))] == ["zeta"]
    assert [c.name for c in remote.fetch(None)] == ["Alpha", "mid", "zeta"]
