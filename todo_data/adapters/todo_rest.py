from __future__ import annotations

import logging
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar
from urllib.parse import quote

import requests

from todo_data.adapters.api_errors import (
    ApiEmptyBodyError,
    ApiError,
    ApiHttpError,
    ErrorEnvelope,
    response_body,
)
from todo_data.adapters.http_client import HttpConfig, RetryingSession
from todo_data.config import DataConfig
from todo_data.domain.entities import Category, Feedback, Task, User

E = TypeVar("E")


class _RestClient:
    """Envelope handling shared by every task API source.

    Responses use the ``{success, data, message, error}`` envelope. Failures
    are raised as ``ApiError`` subclasses and left for the repository to
    classify.
    """

    resource: str = ""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        *,
        http_cfg: Optional[HttpConfig] = None,
        http: Optional[RetryingSession] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.http = http or RetryingSession(api_key, http_cfg or HttpConfig())
        self._log = logging.getLogger(__name__)

    @classmethod
    def from_config(cls, cfg: DataConfig, *, http: Optional[RetryingSession] = None):
        return cls(
            cfg.base_url,
            cfg.api_key,
            http_cfg=HttpConfig.from_data_config(cfg),
            http=http,
        )

    # ---- Helpers ----
    def _url(self, *parts: str) -> str:
        segments = [self.resource, *(quote(str(part), safe="") for part in parts)]
        return self.base_url + "/".join(segments)

    def _unwrap(self, resp: requests.Response, ctx: str, *, require_data: bool = True) -> Any:
        self._ensure_ok(resp, ctx)
        if resp.status_code == 204 or not (getattr(resp, "text", "") or "").strip():
            if require_data:
                raise ApiEmptyBodyError(f"{ctx}: Response body is empty", status=resp.status_code, context=ctx)
            return None
        body = self._json_any(resp, ctx)
        if isinstance(body, dict) and "success" in body:
            if not body.get("success"):
                envelope = ErrorEnvelope.from_body(body)
                raise ApiError(
                    f"{ctx}: {envelope.message or 'request rejected'}",
                    code=envelope.code,
                    hint=envelope.details,
                    payload=body,
                    context=ctx,
                )
            data = body.get("data")
        else:
            data = body
        if data is None and require_data:
            raise ApiEmptyBodyError(f"{ctx}: Response body is empty", status=resp.status_code, context=ctx)
        return data

    @staticmethod
    def _ensure_ok(resp: requests.Response, ctx: str) -> None:
        if 200 <= resp.status_code < 300:
            return
        status = resp.status_code
        payload = response_body(resp)
        envelope = ErrorEnvelope.from_body(payload)
        error_type = ApiHttpError.for_status(status)
        raise error_type(
            envelope.describe(ctx, status),
            status=status,
            code=envelope.code,
            hint=envelope.details,
            payload=payload,
            context=ctx,
        )

    @staticmethod
    def _json_any(resp: requests.Response, ctx: str) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            snippet = getattr(resp, "text", "")[:400]
            raise ApiError(f"{ctx}: Invalid JSON response: {snippet}", context=ctx) from exc


class _RestResource(_RestClient, Generic[E]):
    """Remote source for one REST collection.

    Endpoints:
        - ``GET {resource}`` (paged list)
        - ``GET {resource}/{id}``
        - ``POST {resource}``
        - ``PUT {resource}/{id}``
        - ``DELETE {resource}/{id}``
    """

    list_key: str = ""
    entity_type: Type[Any] = object

    # ---- RemoteSource ----
    def fetch(self, query: Any) -> List[E]:
        url = self._url()
        params = query.to_query() if hasattr(query, "to_query") else None
        resp = self.http.get(url, params=params)
        data = self._unwrap(resp, f"list {self.resource}")
        return self._entities(data, f"list {self.resource}")

    def fetch_by_id(self, entity_id: str) -> E:
        ctx = f"get {self.resource}[{entity_id}]"
        resp = self.http.get(self._url(entity_id))
        return self._entity(self._unwrap(resp, ctx), ctx)

    def create(self, params: Any) -> E:
        ctx = f"create {self.resource}"
        resp = self.http.post(self._url(), json_body=params.to_payload())
        return self._entity(self._unwrap(resp, ctx), ctx)

    def update(self, params: Any) -> E:
        ctx = f"update {self.resource}[{params.id}]"
        resp = self.http.put(self._url(params.id), json_body=params.to_payload())
        return self._entity(self._unwrap(resp, ctx), ctx)

    def delete(self, entity_id: str) -> None:
        ctx = f"delete {self.resource}[{entity_id}]"
        resp = self.http.delete(self._url(entity_id))
        self._unwrap(resp, ctx, require_data=False)

    # ---- Helpers ----
    def _entity(self, data: Any, ctx: str) -> E:
        if not isinstance(data, dict):
            raise ApiError(f"{ctx}: expected object response", payload=data, context=ctx)
        return self.entity_type.from_payload(data)

    def _entities(self, data: Any, ctx: str) -> List[E]:
        items = data
        if isinstance(data, dict):
            items = data.get(self.list_key, data.get("items"))
        if not isinstance(items, list):
            raise ApiError(f"{ctx}: expected list response", payload=data, context=ctx)
        entities: List[E] = []
        for item in items:
            if not isinstance(item, dict):
                self._log.debug("%s: skipping non-object entry %r", ctx, item)
                continue
            entities.append(self.entity_type.from_payload(item))
        return entities


class TaskRestSource(_RestResource[Task]):
    """Task endpoints, including ``PATCH tasks/{id}/complete`` and ``GET tasks/search``."""

    resource = "tasks"
    list_key = "tasks"
    entity_type = Task

    def complete(self, task_id: str) -> Task:
        ctx = f"complete tasks[{task_id}]"
        resp = self.http.patch(self._url(task_id, "complete"))
        return self._entity(self._unwrap(resp, ctx), ctx)

    def search(self, text: str) -> List[Task]:
        ctx = "search tasks"
        resp = self.http.get(self._url("search"), params={"q": text})
        return self._entities(self._unwrap(resp, ctx), ctx)


class CategoryRestSource(_RestResource[Category]):
    resource = "categories"
    list_key = "categories"
    entity_type = Category


class FeedbackRestSource(_RestResource[Feedback]):
    resource = "feedback"
    list_key = "feedback"
    entity_type = Feedback


class UserRestSource(_RestResource[User]):
    resource = "users"
    list_key = "users"
    entity_type = User


class AuthRestSource(_RestClient):
    """Phone/OTP sign-in endpoints.

    Endpoints:
        - ``POST auth/login`` sends an OTP to the phone number.
        - ``POST auth/verify-otp`` exchanges the OTP for a bearer token.
        - ``POST auth/logout``

    A token returned by ``verify_otp`` is not applied to ``self.http``; the
    auth repository decides which sessions carry it.
    """

    resource = "auth"

    def login(self, params: Any) -> str:
        """Request an OTP; returns the server's confirmation message."""
        ctx = "auth login"
        resp = self.http.post(self._url("login"), json_body=params.to_payload())
        data = self._unwrap(resp, ctx, require_data=False)
        message = data.get("message") if isinstance(data, dict) else None
        return str(message or "OTP sent successfully")

    def verify_otp(self, params: Any) -> Dict[str, Any]:
        """``data`` of the verification response; it always carries a token."""
        ctx = "auth verify-otp"
        resp = self.http.post(self._url("verify-otp"), json_body=params.to_payload())
        data = self._unwrap(resp, ctx)
        if not isinstance(data, dict) or not data.get("token"):
            raise ApiError(f"{ctx}: OTP verification failed", payload=data, context=ctx)
        return data

    def logout(self) -> None:
        ctx = "auth logout"
        self._unwrap(self.http.post(self._url("logout")), ctx, require_data=False)


__all__ = [
    "AuthRestSource",
    "CategoryRestSource",
    "FeedbackRestSource",
    "TaskRestSource",
    "UserRestSource",
]
