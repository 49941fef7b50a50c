from datetime import datetime, timedelta, timezone

import pytest

from todo_data.adapters.storage_local import StorageLocal
from todo_data.adapters.todo_rest_mock import (
    category_remote_mock,
    feedback_remote_mock,
    user_remote_mock,
)
from todo_data.config import DataConfig
from todo_data.domain.entities import CacheEntry, Category, Feedback, FeedbackCategory, User
from todo_data.domain.errors import ErrorKind
from todo_data.domain.outcome import Error, Success
from todo_data.domain.params import (
    CreateCategoryParams,
    CreateUserParams,
    SubmitFeedbackParams,
    UpdateCategoryParams,
)
from todo_data.usecases.category_repository import CategoryRepository
from todo_data.usecases.feedback_repository import FeedbackRepository
from todo_data.usecases.submit_feedback import SubmitFeedback
from todo_data.usecases.user_repository import UserRepository

BASE = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


def _clock():
    return BASE


@pytest.mark.asyncio
async def test_categories_are_listed_by_name():
    remote = category_remote_mock(_clock)
    remote.seed(
        Category(id="c1", name="beta", color="#000000", created_at=BASE),
        Category(id="c2", name="Alpha", color="#FFFFFF", created_at=BASE),
        Category(id="c3", name="gamma", color="#123456", created_at=BASE),
    )
    repo = CategoryRepository(remote, StorageLocal(), DataConfig(), clock=_clock)

    names = [c.name for c in (await repo.read()).get_or_raise()]

    assert names == ["Alpha", "beta", "gamma"]
    assert [c.name for c in repo.snapshot().get_or_raise()] == names


@pytest.mark.asyncio
async def test_category_create_and_rename():
    repo = CategoryRepository(category_remote_mock(_clock), StorageLocal(), clock=_clock)

    created = (await repo.create(CreateCategoryParams(name="Work", color="#FF8800"))).get_or_raise()
    renamed = await repo.update(UpdateCategoryParams(id=created.id, name="Office"))

    assert renamed.get_or_raise().name == "Office"
    assert renamed.get_or_raise().color == "#FF8800"
    assert await repo.get_by_id(created.id) == renamed


def test_invalid_category_params_fail_construction():
    with pytest.raises(ValueError, match="Invalid color format"):
        CreateCategoryParams(name="Work", color="orange")


@pytest.mark.asyncio
async def test_submit_feedback_and_analytics():
    repo = FeedbackRepository(feedback_remote_mock(_clock), StorageLocal(), clock=_clock)
    submit = SubmitFeedback(repo)

    await submit(SubmitFeedbackParams(rating=5, comment="Great", category="feature request"))
    await submit(SubmitFeedbackParams(rating=3))
    last = await submit(SubmitFeedbackParams(rating=4, category=FeedbackCategory.BUG_REPORT))
    stats = repo.analytics()

    assert last.get_or_raise().category is FeedbackCategory.BUG_REPORT
    assert stats.stale is False
    assert stats.value.total == 3
    assert stats.value.average_rating == pytest.approx(4.0)
    assert stats.value.rating_distribution == {1: 0, 2: 0, 3: 1, 4: 1, 5: 1}
    assert stats.value.category_distribution[FeedbackCategory.FEATURE_REQUEST] == 1
    assert stats.value.category_distribution[FeedbackCategory.GENERAL] == 1


@pytest.mark.asyncio
async def test_submit_feedback_rejects_invalid_rating():
    remote = feedback_remote_mock(_clock)
    repo = FeedbackRepository(remote, StorageLocal(), clock=_clock)

    outcome = await SubmitFeedback(repo)({"rating": 9})

    assert outcome == Error(ErrorKind.VALIDATION, "Rating cannot exceed 5")
    assert remote.calls["create"] == 0


def test_empty_feedback_analytics():
    repo = FeedbackRepository(feedback_remote_mock(_clock), StorageLocal(), clock=_clock)

    stats = repo.analytics().get_or_raise()

    assert stats.total == 0
    assert stats.average_rating == 0.0


@pytest.mark.asyncio
async def test_find_user_by_phone_number():
    store = StorageLocal()
    repo = UserRepository(user_remote_mock(_clock), store, DataConfig(cache_expiry_s=60), clock=_clock)
    created = (await repo.create(CreateUserParams(phone_number="5551234567", name="Ada"))).get_or_raise()
    store.put("users", CacheEntry(User(id="u-old", phone_number="5550000000", created_at=BASE), BASE - timedelta(hours=1)))

    assert repo.find_by_phone_number(" 5551234567 ") == Success(created)
    assert repo.find_by_phone_number("5550000000").stale is True
    assert repo.find_by_phone_number("000") == Success(None)


def test_feedback_entity_rejects_updated_before_created():
    with pytest.raises(ValueError, match="updated_at"):
        Feedback(id="f1", rating=3, created_at=BASE, updated_at=BASE - timedelta(seconds=1))
