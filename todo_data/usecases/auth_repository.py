"""Phone/OTP sign-in and the locally cached bearer session."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, List, Optional

from todo_data.domain.entities import CURRENT_SESSION_ID, AuthSession, CacheEntry, User
from todo_data.domain.errors import ErrorKind
from todo_data.domain.outcome import Error, Outcome, Success
from todo_data.domain.params import LoginParams, VerifyOtpParams
from todo_data.domain.ports import LocalStore
from todo_data.domain.time_utils import utc_now
from todo_data.usecases.error_mapping import run_catching_async


class AuthRepository:
    """Sign-in flow backed by an ``AuthRestSource``-like remote.

    The session lives in the store's ``auth`` collection. Every HTTP session
    passed to :meth:`attach` gets the current token as its ``api_key``, so
    the bearer header follows sign-in, token refresh and sign-out.
    """

    collection = "auth"

    def __init__(
        self,
        remote: Any,
        store: LocalStore,
        *,
        users_collection: str = "users",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.remote = remote
        self.store = store
        self.users_collection = users_collection
        self._clock = clock
        self._http: List[Any] = []
        self._log = logging.getLogger(__name__)

    def attach(self, http: Any) -> None:
        """Keep ``http.api_key`` equal to the stored token from now on."""
        self._http.append(http)
        token = self.token()
        if token:
            http.api_key = token

    # ---- Remote flow ----
    async def login(self, phone_number: str) -> Outcome[str]:
        """Ask the server to send an OTP to ``phone_number``."""
        try:
            params = LoginParams(phone_number)
        except ValueError as exc:
            return Error(ErrorKind.VALIDATION, str(exc))
        outcome = await self._call(self.remote.login, params)
        if isinstance(outcome, Error):
            self._log.info("auth: login for %s rejected (%s)", _masked(params.phone_number), outcome.kind.value)
        return outcome

    async def verify_otp(self, phone_number: str, otp: str) -> Outcome[AuthSession]:
        """Exchange ``otp`` for a session, then cache the session and its user."""
        try:
            params = VerifyOtpParams(phone_number, otp)
        except ValueError as exc:
            return Error(ErrorKind.VALIDATION, str(exc))
        outcome = await self._call(self.remote.verify_otp, params)
        if isinstance(outcome, Error):
            return outcome
        now = self._clock()
        try:
            session = AuthSession.from_verification(outcome.value, params.phone_number, now)
        except (TypeError, ValueError) as exc:
            return Error(ErrorKind.SERVER, f"Malformed sign-in response: {exc}", cause=exc)
        if session.user is not None:
            self.store.put(self.users_collection, CacheEntry(session.user, now))
        self._store_session(session)
        self._log.info("auth: signed in user %s", session.user.id if session.user else "?")
        return Success(session)

    async def logout(self) -> Outcome[None]:
        """Sign out remotely; local credentials are dropped even if that fails."""
        outcome = await self._call(self.remote.logout)
        self.clear_token()
        if isinstance(outcome, Error):
            self._log.warning("auth: remote logout failed (%s): %s", outcome.kind.value, outcome.message)
            return outcome
        return Success(None)

    # ---- Local session ----
    def session(self) -> Optional[AuthSession]:
        """The stored session, or ``None`` when absent or expired."""
        entry = self.store.get(self.collection, CURRENT_SESSION_ID)
        if entry is None or entry.entity.is_expired(self._clock()):
            return None
        return entry.entity

    def token(self) -> Optional[str]:
        session = self.session()
        return session.token if session else None

    def current_user(self) -> Optional[User]:
        session = self.session()
        return session.user if session else None

    def is_logged_in(self) -> bool:
        return self.session() is not None

    def save_token(self, token: str) -> None:
        """Store ``token``; an existing session keeps its user and lifetime."""
        if not isinstance(token, str) or not token.strip():
            raise ValueError("Auth token cannot be empty")
        now = self._clock()
        entry = self.store.get(self.collection, CURRENT_SESSION_ID)
        if entry is None:
            session = AuthSession(token=token, created_at=now)
        else:
            session = replace(entry.entity, token=token, updated_at=max(now, entry.entity.created_at))
        self._store_session(session)

    def clear_token(self) -> None:
        self.store.delete(self.collection, CURRENT_SESSION_ID)
        self._apply(None)

    # ---- Helpers ----
    def _store_session(self, session: AuthSession) -> None:
        self.store.put(self.collection, CacheEntry(session, self._clock()))
        self._apply(session.token)

    def _apply(self, token: Optional[str]) -> None:
        for http in self._http:
            http.api_key = token

    async def _call(self, fn: Callable[..., Any], *args: Any) -> Outcome[Any]:
        if inspect.iscoroutinefunction(fn):
            return await run_catching_async(fn, *args)
        return await run_catching_async(asyncio.to_thread, fn, *args)


def _masked(phone_number: str) -> str:
    return "***" + phone_number[-4:]


__all__ = ["AuthRepository"]
