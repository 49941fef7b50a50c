from datetime import datetime, timedelta, timezone

import pytest

from todo_data.adapters.api_errors import ApiConnectionError, ApiServerError
from todo_data.adapters.storage_local import StorageLocal
from todo_data.adapters.todo_rest_mock import InMemoryRemote, TaskRemoteMock
from todo_data.config import DataConfig
from todo_data.domain.entities import CacheEntry, Task, TaskPriority
from todo_data.domain.errors import ErrorKind
from todo_data.domain.outcome import Error, Success
from todo_data.domain.params import CreateTaskParams, TaskQueryParams, UpdateTaskParams
from todo_data.domain.validation import TaskValidator
from todo_data.usecases.complete_task import CompleteTask
from todo_data.usecases.create_task import CreateTask
from todo_data.usecases.delete_task import DeleteTask
from todo_data.usecases.get_tasks import GetTasks
from todo_data.usecases.subscription import Subscription
from todo_data.usecases.task_repository import BulkOperation, TaskRepository
from todo_data.usecases.update_task import UpdateTask

BASE = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


def _setup():
    remote = TaskRemoteMock(clock=lambda: BASE)
    store = StorageLocal()
    repo = TaskRepository(remote, store, DataConfig(), clock=lambda: BASE)
    return repo, remote, store


def test_blank_title_fails_construction():
    with pytest.raises(ValueError, match="Title cannot be empty"):
        CreateTaskParams(title="", description=None)


@pytest.mark.asyncio
async def test_create_buy_milk():
    repo, remote, store = _setup()
    params = CreateTaskParams(
        title="Buy milk",
        description=None,
        priority=TaskPriority.MEDIUM,
        category_id=None,
        due_date=None,
    )

    outcome = await CreateTask(repo)(params)

    assert isinstance(outcome, Success)
    task = outcome.value
    assert task.title == "Buy milk"
    assert task.completed is False
    assert task.priority is TaskPriority.MEDIUM
    assert store.get("tasks", task.id).entity == task
    assert remote.calls["create"] == 1


@pytest.mark.asyncio
async def test_create_rechecks_due_date_against_the_clock():
    repo, remote, _ = _setup()
    params = CreateTaskParams(title="Pay rent", due_date=datetime(2099, 1, 1, tzinfo=timezone.utc))
    later = TaskValidator(clock=lambda: datetime(2100, 1, 1, tzinfo=timezone.utc))

    outcome = await CreateTask(repo, later)(params)

    assert outcome == Error(ErrorKind.VALIDATION, "Due date cannot be in the past")
    assert outcome.user_message == "Due date cannot be in the past"
    assert remote.calls["create"] == 0


@pytest.mark.asyncio
async def test_update_task_changes_only_given_fields():
    repo, remote, _ = _setup()
    remote.seed(Task(id="t1", title="Draft", description="keep", created_at=BASE))

    outcome = await UpdateTask(repo)(UpdateTaskParams(id="t1", title="Final"))

    task = outcome.get_or_raise()
    assert (task.title, task.description) == ("Final", "keep")
    assert task.updated_at == BASE


@pytest.mark.asyncio
async def test_update_of_unknown_task_is_data_not_found():
    repo, _, store = _setup()

    outcome = await UpdateTask(repo)(UpdateTaskParams(id="nope", title="x"))

    assert outcome.kind is ErrorKind.DATA_NOT_FOUND
    assert store.all("tasks") == []


@pytest.mark.asyncio
async def test_complete_and_delete_reject_blank_ids():
    repo, remote, _ = _setup()

    assert await CompleteTask(repo)("  ") == Error(ErrorKind.VALIDATION, "Task ID cannot be empty")
    assert await DeleteTask(repo)("") == Error(ErrorKind.VALIDATION, "Task ID cannot be empty")
    assert sum(remote.calls.values()) == 0


@pytest.mark.asyncio
async def test_complete_uses_the_complete_endpoint():
    repo, remote, store = _setup()
    remote.seed(Task(id="t1", title="Walk dog", created_at=BASE))

    outcome = await CompleteTask(repo)("t1")

    assert outcome.get_or_raise().completed is True
    assert remote.calls["complete"] == 1
    assert store.get("tasks", "t1").entity.completed is True


@pytest.mark.asyncio
async def test_delete_task_removes_it_remotely_and_locally():
    repo, remote, store = _setup()
    remote.seed(Task(id="t1", title="Old", created_at=BASE))
    await repo.read()

    assert await DeleteTask(repo)("t1") == Success(None)
    assert remote.items() == []
    assert store.get("tasks", "t1") is None


@pytest.mark.asyncio
async def test_search_filters_by_title_and_validates_length():
    repo, remote, _ = _setup()
    remote.seed(
        Task(id="t1", title="Buy milk", created_at=BASE),
        Task(id="t2", title="Call mom", description="about MILK prices", created_at=BASE),
        Task(id="t3", title="Gym", created_at=BASE),
    )

    found = (await repo.search("milk")).get_or_raise()

    assert sorted(task.id for task in found) == ["t1", "t2"]
    assert (remote.calls["search"], remote.calls["fetch"]) == (1, 0)
    again = (await repo.search("milk")).get_or_raise()
    assert sorted(task.id for task in again) == ["t1", "t2"]
    assert remote.calls["search"] == 1
    too_long = await repo.search("x" * 51)
    assert too_long == Error(ErrorKind.VALIDATION, "Search query cannot exceed 50 characters")


def test_get_tasks_returns_a_subscription_for_the_query():
    repo, _, _ = _setup()
    query = TaskQueryParams(completed=True)

    subscription = GetTasks(repo)(query)

    assert isinstance(subscription, Subscription)
    assert subscription.query is query
    assert GetTasks(repo)().query == TaskQueryParams()


def test_analytics_counts_cached_tasks():
    repo, _, store = _setup()
    store.put_many(
        "tasks",
        [
            CacheEntry(Task(id="t1", title="a", created_at=BASE, completed=True, priority="high"), BASE),
            CacheEntry(
                Task(id="t2", title="b", created_at=BASE, priority="low", due_date=BASE - timedelta(days=1)),
                BASE,
            ),
            CacheEntry(Task(id="t3", title="c", created_at=BASE), BASE),
        ],
    )

    outcome = repo.analytics()

    stats = outcome.get_or_raise()
    assert outcome.stale is False
    assert (stats.total, stats.completed, stats.pending, stats.overdue) == (3, 1, 2, 1)
    assert stats.completion_rate == pytest.approx(100 / 3)
    assert stats.by_priority == {TaskPriority.HIGH: 1, TaskPriority.MEDIUM: 1, TaskPriority.LOW: 1}


def test_analytics_is_stale_when_rows_expired():
    repo, _, store = _setup()
    store.put("tasks", CacheEntry(Task(id="t1", title="a", created_at=BASE), BASE - timedelta(days=2)))

    assert repo.analytics().stale is True


@pytest.mark.asyncio
async def test_search_without_a_search_endpoint_uses_the_filtered_listing():
    remote = InMemoryRemote(Task, "tasks", lambda: BASE)
    remote.seed(Task(id="t1", title="Buy milk", created_at=BASE), Task(id="t2", title="Gym", created_at=BASE))
    repo = TaskRepository(remote, StorageLocal(), DataConfig(), clock=lambda: BASE)

    found = await repo.search("MILK")

    assert [task.id for task in found.get_or_raise()] == ["t1"]
    assert remote.calls["fetch"] == 1


@pytest.mark.asyncio
async def test_search_serves_cached_matches_when_the_endpoint_is_down():
    repo, remote, _ = _setup()
    remote.seed(Task(id="t1", title="Buy milk", created_at=BASE))
    await repo.search("milk")
    repo.expire()
    remote.fail_with(ApiConnectionError("Unable to connect"))

    outcome = await repo.search("milk")

    assert outcome.stale is True
    assert [task.id for task in outcome.get_or_raise()] == ["t1"]
    assert remote.calls["search"] == 2


@pytest.mark.asyncio
async def test_bulk_complete_reports_each_task():
    repo, remote, store = _setup()
    remote.seed(Task(id="t1", title="a", created_at=BASE), Task(id="t3", title="c", created_at=BASE))

    outcome = await repo.bulk("complete", ["t1", "t2", "t3"])

    result = outcome.get_or_raise()
    assert result.operation is BulkOperation.COMPLETE
    assert result.succeeded == ["t1", "t3"]
    assert result.failed["t2"].kind is ErrorKind.DATA_NOT_FOUND
    assert result.messages == ["Completed task t1", "Completed task t3"]
    assert remote.calls["complete"] == 3
    assert store.get("tasks", "t1").entity.completed is True
    assert store.get("tasks", "t2") is None


@pytest.mark.asyncio
async def test_bulk_delete_keeps_rows_whose_remote_call_failed():
    repo, remote, store = _setup()
    remote.seed(Task(id="t1", title="a", created_at=BASE), Task(id="t2", title="b", created_at=BASE))
    await repo.read()
    remote.fail_with(ApiServerError("boom", status=500))

    result = (await repo.bulk(BulkOperation.DELETE, ["t1", "t2"])).get_or_raise()

    assert result.failed["t1"].kind is ErrorKind.SERVER
    assert result.succeeded == ["t2"]
    assert store.get("tasks", "t1") is not None
    assert store.get("tasks", "t2") is None
    assert [task.id for task in remote.items()] == ["t1"]


@pytest.mark.asyncio
async def test_bulk_update_changes_priority_only():
    repo, remote, store = _setup()
    remote.seed(
        Task(id="t1", title="a", category_id="c1", created_at=BASE),
        Task(id="t2", title="b", priority="low", created_at=BASE),
    )

    result = (await repo.bulk("update", ["t1", "t2"], priority="high")).get_or_raise()

    assert result.messages == ["Updated task t1", "Updated task t2"]
    assert store.get("tasks", "t1").entity.priority is TaskPriority.HIGH
    assert store.get("tasks", "t1").entity.category_id == "c1"
    assert store.get("tasks", "t2").entity.priority is TaskPriority.HIGH


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "operation,ids,extra,message",
    [
        ("archive", ["t1"], {}, "Unsupported bulk operation: archive"),
        ("delete", [], {}, "Task IDs cannot be empty"),
        ("complete", ["t1", " "], {}, "Task ID cannot be empty"),
        ("update", ["t1"], {}, "Bulk update needs a category or a priority"),
        ("update", ["t1"], {"priority": "urgent"}, "Invalid priority: urgent"),
    ],
)
async def test_bulk_rejects_bad_input_before_any_remote_call(operation, ids, extra, message):
    repo, remote, _ = _setup()

    outcome = await repo.bulk(operation, ids, **extra)

    assert outcome == Error(ErrorKind.VALIDATION, message)
    assert sum(remote.calls.values()) == 0
