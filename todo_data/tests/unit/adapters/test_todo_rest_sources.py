import json
from typing import Any, Dict, List

import pytest

from todo_data.adapters.api_errors import (
    ApiClientError,
    ApiEmptyBodyError,
    ApiError,
    ApiServerError,
)
from todo_data.adapters.http_client import HttpConfig, RetryingSession
from todo_data.adapters.todo_rest import AuthRestSource, CategoryRestSource, TaskRestSource
from todo_data.config import DataConfig
from todo_data.domain.entities import TaskPriority
from todo_data.domain.params import (
    CreateCategoryParams,
    CreateTaskParams,
    LoginParams,
    TaskQueryParams,
    UpdateTaskParams,
    VerifyOtpParams,
)

TASK_JSON = {
    "id": "t1",
    "title": "Buy milk",
    "description": None,
    "priority": "high",
    "categoryId": None,
    "dueDate": None,
    "completed": False,
    "createdAt": "2024-03-01T08:00:00Z",
    "updatedAt": "2024-03-01T08:00:00Z",
}


class _ResponseStub:
    def __init__(self, payload: Any = None, status_code: int = 200, text: Any = None) -> None:
        self._payload = payload
        self.status_code = status_code
        if text is None:
            text = "" if payload is None else json.dumps(payload)
        self.text = text

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class _SessionStub:
    def __init__(self, *responses: _ResponseStub) -> None:
        self._responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> _ResponseStub:
        self.calls.append({"method": method, "url": url, **kwargs})
        return self._responses.pop(0)


def _source(cls, *responses: _ResponseStub, retries: int = 0):
    http = RetryingSession("key", HttpConfig(retries=retries), sleep=lambda _s: None)
    stub = _SessionStub(*responses)
    http.session = stub  # type: ignore[assignment]
    return cls("http://api.test/v1", http=http), stub


def _envelope(data: Any) -> Dict[str, Any]:
    return {"success": True, "data": data, "message": "ok"}


def test_fetch_sends_query_and_unwraps_list_envelope() -> None:
    source, stub = _source(TaskRestSource, _ResponseStub(_envelope({"tasks": [TASK_JSON, "junk"]})))

    tasks = source.fetch(TaskQueryParams(page=2, limit=10, completed=False))

    call = stub.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == "http://api.test/v1/tasks"
    assert call["params"]["page"] == 2
    assert call["params"]["completed"] == "false"
    assert [task.id for task in tasks] == ["t1"]
    assert tasks[0].priority is TaskPriority.HIGH


def test_fetch_accepts_bare_list_data() -> None:
    source, _ = _source(TaskRestSource, _ResponseStub(_envelope([TASK_JSON])))

    assert [task.title for task in source.fetch(TaskQueryParams())] == ["Buy milk"]


def test_create_posts_payload_and_returns_entity() -> None:
    source, stub = _source(TaskRestSource, _ResponseStub(_envelope(TASK_JSON), status_code=201))

    task = source.create(CreateTaskParams(title="Buy milk", priority="high"))

    call = stub.calls[0]
    assert call["method"] == "POST"
    assert json.loads(call["data"]) == {"title": "Buy milk", "priority": "high"}
    assert task.id == "t1"


def test_update_complete_and_delete_hit_item_urls() -> None:
    done = dict(TASK_JSON, completed=True)
    source, stub = _source(
        TaskRestSource,
        _ResponseStub(_envelope(TASK_JSON)),
        _ResponseStub(_envelope(done)),
        _ResponseStub(status_code=204),
    )

    source.update(UpdateTaskParams(id="t1", title="Buy milk"))
    assert source.complete("t1").completed is True
    assert source.delete("t/1") is None

    assert [(c["method"], c["url"]) for c in stub.calls] == [
        ("PUT", "http://api.test/v1/tasks/t1"),
        ("PATCH", "http://api.test/v1/tasks/t1/complete"),
        ("DELETE", "http://api.test/v1/tasks/t%2F1"),
    ]


def test_search_uses_q_parameter() -> None:
    source, stub = _source(TaskRestSource, _ResponseStub(_envelope([TASK_JSON])))

    assert len(source.search("milk")) == 1
    assert stub.calls[0]["url"] == "http://api.test/v1/tasks/search"
    assert stub.calls[0]["params"] == {"q": "milk"}


def test_http_404_raises_client_error_with_status() -> None:
    source, _ = _source(
        TaskRestSource,
        _ResponseStub({"success": False, "error": {"code": "NOT_FOUND", "message": "Task missing"}}, 404),
    )

    with pytest.raises(ApiClientError) as info:
        source.fetch_by_id("t9")
    assert info.value.status == 404
    assert info.value.code == "NOT_FOUND"
    assert "Task missing" in str(info.value)


def test_http_503_is_retried_then_raises_server_error() -> None:
    source, stub = _source(
        TaskRestSource,
        _ResponseStub({"message": "busy"}, 503),
        _ResponseStub({"message": "busy"}, 503),
        retries=1,
    )

    with pytest.raises(ApiServerError) as info:
        source.fetch(TaskQueryParams())
    assert info.value.status == 503
    assert len(stub.calls) == 2


def test_empty_body_and_null_data_raise_empty_body_error() -> None:
    source, _ = _source(
        TaskRestSource,
        _ResponseStub(status_code=200, text=""),
        _ResponseStub({"success": True, "data": None}),
    )

    with pytest.raises(ApiEmptyBodyError):
        source.fetch_by_id("t1")
    with pytest.raises(ApiEmptyBodyError):
        source.fetch_by_id("t1")


def test_rejected_envelope_raises_api_error_without_status() -> None:
    source, _ = _source(
        CategoryRestSource,
        _ResponseStub({"success": False, "error": "Name taken", "message": "rejected"}),
    )

    with pytest.raises(ApiError) as info:
        source.create(CreateCategoryParams(name="Work", color="#FF0000"))
    assert info.value.status is None
    assert "Name taken" in str(info.value)


def test_invalid_json_raises_api_error() -> None:
    source, _ = _source(TaskRestSource, _ResponseStub(status_code=200, text="<html>"))

    with pytest.raises(ApiError, match="Invalid JSON"):
        source.fetch_by_id("t1")


def test_from_config_uses_base_url_and_retry_settings() -> None:
    source = CategoryRestSource.from_config(DataConfig(base_url="http://example.test/api", retry_attempts=1))

    assert source.base_url == "http://example.test/api/"
    assert source.http.cfg.retries == 1
    assert source._url("c1") == "http://example.test/api/categories/c1"


def test_auth_login_and_verify_post_to_auth_endpoints() -> None:
    verified = {"token": "tok", "refreshToken": "ref", "expiresIn": 3600, "user": {"id": "u1"}}
    source, stub = _source(
        AuthRestSource,
        _ResponseStub(_envelope({"message": "OTP sent successfully", "expiresIn": 300})),
        _ResponseStub(_envelope(verified)),
        _ResponseStub(_envelope(None)),
    )

    assert source.login(LoginParams(phone_number="1234567890")) == "OTP sent successfully"
    assert source.verify_otp(VerifyOtpParams(phone_number="1234567890", otp="123456")) == verified
    assert source.logout() is None

    assert [(c["method"], c["url"]) for c in stub.calls] == [
        ("POST", "http://api.test/v1/auth/login"),
        ("POST", "http://api.test/v1/auth/verify-otp"),
        ("POST", "http://api.test/v1/auth/logout"),
    ]
    assert json.loads(stub.calls[1]["data"]) == {"phoneNumber": "1234567890", "otp": "123456"}


def test_auth_verify_without_token_raises_api_error() -> None:
    source, _ = _source(AuthRestSource, _ResponseStub(_envelope({"user": {"id": "u1"}})))

    with pytest.raises(ApiError, match="OTP verification failed"):
        source.verify_otp(VerifyOtpParams(phone_number="1234567890", otp="123456"))


def test_auth_rejected_otp_raises_client_error() -> None:
    body = {"success": False, "message": "Invalid OTP", "error": {"code": "INVALID_OTP"}}
    source, _ = _source(AuthRestSource, _ResponseStub(body, status_code=401))

    with pytest.raises(ApiClientError) as info:
        source.verify_otp(VerifyOtpParams(phone_number="1234567890", otp="000000"))

    assert info.value.status == 401
