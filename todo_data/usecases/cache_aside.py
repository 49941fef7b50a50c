"""Cache-aside repository engine shared by every entity collection.

Reads are served from the local store while the query's record is fresh and
refreshed from the remote source otherwise. Writes go to the remote first
and are mirrored into the store right after the remote call completes.

Concurrency model:
    All store mutations happen on the event loop, directly after the awaited
    remote call returns and without another suspension point in between. The
    loop is therefore the single writer, and for any entity id the store
    reflects the most recently *completed* remote call. Write coroutines run
    as shielded tasks: once the remote call is issued, cancelling the caller
    no longer stops the store update.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Iterable,
    List,
    Optional,
    Set,
    Tuple,
    TypeVar,
)

from todo_data.config import DataConfig
from todo_data.domain.entities import CacheEntry
from todo_data.domain.errors import ErrorKind
from todo_data.domain.outcome import Error, Outcome, Success
from todo_data.domain.params import ListQueryParams
from todo_data.domain.ports import LocalStore, RemoteSource
from todo_data.domain.time_utils import utc_now
from todo_data.usecases.error_mapping import to_error
from todo_data.usecases.subscription import Subscription
from todo_data.utils.logging import log_api_cache

E = TypeVar("E")
T = TypeVar("T")

_MAX_SYNC_PAGES = 1000


class CollectionState(str, Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"
    STALE = "stale"


@dataclass(frozen=True)
class _QueryRecord:
    fetched_at: datetime
    ids: Tuple[str, ...]


class CacheAsideRepository(Generic[E]):
    """Per-collection cache-aside coordinator.

    Subclasses set ``collection`` and may override ``order`` (default:
    newest first) and ``default_query``.
    """

    collection: str = ""

    def __init__(
        self,
        remote: RemoteSource[E],
        store: LocalStore,
        config: Optional[DataConfig] = None,
        *,
        clock: Callable[[], datetime] = utc_now,
        collection: Optional[str] = None,
    ) -> None:
        self.remote = remote
        self.store = store
        self.config = config or DataConfig()
        self.collection = collection or self.collection
        if not self.collection:
            raise ValueError("Repository requires a collection name.")
        self.state = CollectionState.IDLE
        self._clock = clock
        self._records: Dict[Any, _QueryRecord] = {}
        self._refreshing = 0
        self._serving_stale = False
        self._write_seq = 0
        self._written_at: Dict[str, int] = {}
        self._pending_writes: Set["asyncio.Task[Any]"] = set()
        self._dependents: List[Tuple["CacheAsideRepository[Any]", Callable[[str], Callable[[Any], bool]]]] = []
        self._log = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Query evaluation hooks
    # ------------------------------------------------------------------
    def default_query(self) -> Any:
        return ListQueryParams(limit=self.config.default_page_size)

    def listing_query(self, page: int) -> Any:
        """Page ``page`` of the unfiltered listing used by :meth:`sync`."""
        return ListQueryParams(page=page, limit=self.config.max_page_size)

    def order(self, entities: Iterable[E]) -> List[E]:
        ordered = sorted(entities, key=lambda entity: entity.id)
        ordered.sort(key=lambda entity: entity.created_at, reverse=True)
        return ordered

    def evaluate(self, query: Any, entities: Iterable[E]) -> List[E]:
        """Apply ``query`` to locally cached entities (filter, sort, page)."""
        return query.select(self.order(entities))

    def matching(self, query: Any, entities: Iterable[E]) -> List[E]:
        """Every entity ``query`` selects, ignoring its page window."""
        matches = getattr(query, "matches", None)
        if matches is None:
            return list(entities)
        return [entity for entity in entities if matches(entity)]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, query: Any = None) -> Subscription[List[E]]:
        """Live result sequence for ``query``; see :class:`Subscription`."""
        return Subscription(self, self.default_query() if query is None else query)

    async def read(self, query: Any = None) -> Outcome[List[E]]:
        """One-shot cache-aside read of ``query``."""
        if query is None:
            query = self.default_query()
        return await self._read(query, self.remote.fetch, query)

    async def _read(self, query: Any, fn: Callable[..., Any], *args: Any) -> Outcome[List[E]]:
        # ``query`` keys the freshness record and the local evaluation;
        # ``fn(*args)`` is the remote call that answers it
        now = self._clock()
        if self._record_is_fresh(query, now):
            result, stale = self._local(query, now)
            if not stale:
                log_api_cache(self.collection, query, hit=True)
                return Success(result)
        log_api_cache(self.collection, query, hit=False)
        return await self._refresh(query, fn, *args)

    async def get_by_id(self, entity_id: str) -> Outcome[E]:
        now = self._clock()
        entry = self.store.get(self.collection, entity_id)
        if entry is not None and entry.is_fresh(now, self.config.cache_expiry):
            log_api_cache(self.collection, entity_id, hit=True)
            return Success(entry.entity)
        log_api_cache(self.collection, entity_id, hit=False)

        seq = self._write_seq
        outcome = await self._guarded_refresh(self.remote.fetch_by_id, entity_id)
        if isinstance(outcome, Success):
            self._settle(stale=False)
            if self._written_since(entity_id, seq):
                current = self.store.get(self.collection, entity_id)
                if current is None:
                    return Error(ErrorKind.DATA_NOT_FOUND, "Resource not found")
                return Success(current.entity)
            self.store.put(self.collection, CacheEntry(outcome.value, self._clock()))
            return Success(outcome.value)

        error = outcome
        if error.kind is ErrorKind.DATA_NOT_FOUND:
            if entry is not None and not self._written_since(entity_id, seq):
                self.store.delete(self.collection, entity_id)
                self._forget_ids([entity_id])
            self._settle(stale=False)
            return error
        current = self.store.get(self.collection, entity_id)
        if current is not None and error.kind in self.config.stale_serve_kinds:
            self._log.warning(
                "%s[%s]: serving stale cache after %s: %s",
                self.collection,
                entity_id,
                error.kind.value,
                error.message,
            )
            self._settle(stale=True)
            return Success(current.entity, stale=True)
        self._settle(stale=False)
        return error

    def snapshot(self, query: Any = None) -> Outcome[List[E]]:
        """Local-only evaluation of ``query``; ``stale`` when any row is expired."""
        if query is None:
            query = self.default_query()
        result, stale = self._local(query, self._clock())
        return Success(result, stale=stale)

    async def sync(self) -> Outcome[int]:
        """Replace the cached collection with the complete remote listing.

        Nothing is written unless every page was fetched.
        """
        seq = self._write_seq
        collected: Dict[str, E] = {}
        for page in range(1, _MAX_SYNC_PAGES + 1):
            query = self.listing_query(page)
            outcome = await self._guarded_refresh(self.remote.fetch, query)
            if isinstance(outcome, Error):
                self._settle(stale=self._serving_stale)
                return outcome
            batch = list(outcome.value)
            new_ids = [entity.id for entity in batch if entity.id not in collected]
            for entity in batch:
                collected[entity.id] = entity
            if len(batch) < query.limit or not new_ids:
                break

        now = self._clock()
        self.store.put_many(
            self.collection,
            [
                CacheEntry(entity, now)
                for entity in collected.values()
                if not self._written_since(entity.id, seq)
            ],
        )
        gone = [
            entry.entity.id
            for entry in self.store.all(self.collection)
            if entry.entity.id not in collected and not self._written_since(entry.entity.id, seq)
        ]
        if gone:
            self.store.delete_many(self.collection, gone)
        self._records.clear()
        self._settle(stale=False)
        self._log.info("%s: synced %d entities from remote", self.collection, len(collected))
        return Success(len(collected))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def create(self, params: Any) -> Outcome[E]:
        return await self._write(self._apply_put, self.remote.create, params)

    async def update(self, params: Any) -> Outcome[E]:
        def apply(entity: E) -> Outcome[E]:
            if entity.id != params.id:
                return Error(
                    ErrorKind.SERVER,
                    f"Update response id {entity.id!r} does not match requested id {params.id!r}",
                )
            return self._apply_put(entity)

        return await self._write(apply, self.remote.update, params)

    async def delete(self, entity_id: str) -> Outcome[None]:
        def apply(_: Any) -> Outcome[None]:
            self._mark_written(entity_id)
            self.store.delete(self.collection, entity_id)
            for dependent, predicate_for in self._dependents:
                dependent.evict_where(predicate_for(entity_id))
            return Success(None)

        return await self._write(apply, self.remote.delete, entity_id)

    async def wait_for_writes(self) -> None:
        """Wait until every write issued so far has reached the store."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------
    def expire(self) -> None:
        """Forget query freshness; cached rows stay available for stale-serve."""
        self._records.clear()

    def invalidate(self, entity_ids: Optional[Iterable[str]] = None) -> None:
        """Evict ``entity_ids`` (or the whole collection) from the store."""
        if entity_ids is None:
            self._records.clear()
            self.store.clear(self.collection)
            return
        ids = list(entity_ids)
        if not ids:
            return
        self.store.delete_many(self.collection, ids)
        self._forget_ids(ids)

    def evict_where(self, predicate: Callable[[E], bool]) -> List[str]:
        ids = [
            entry.entity.id
            for entry in self.store.all(self.collection)
            if predicate(entry.entity)
        ]
        self.invalidate(ids)
        return ids

    def add_dependent(
        self,
        repository: "CacheAsideRepository[Any]",
        predicate_for: Callable[[str], Callable[[Any], bool]],
    ) -> None:
        """Evict matching rows of ``repository`` whenever an entity here is deleted."""
        self._dependents.append((repository, predicate_for))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    async def _refresh(self, query: Any, fn: Callable[..., Any], *args: Any) -> Outcome[List[E]]:
        seq = self._write_seq
        outcome = await self._guarded_refresh(fn, *args)
        if isinstance(outcome, Success):
            result = self._write_through(query, list(outcome.value), seq)
            self._settle(stale=False)
            return Success(result)

        error = outcome
        if error.kind in self.config.stale_serve_kinds:
            cached = self._stale_value(query)
            if cached is not None:
                self._log.warning(
                    "%s: serving stale cache after %s: %s",
                    self.collection,
                    error.kind.value,
                    error.message,
                )
                self._settle(stale=True)
                return Success(cached, stale=True)
        self._settle(stale=False)
        return error

    async def _guarded_refresh(self, fn: Callable[..., Any], *args: Any) -> Outcome[Any]:
        self._refreshing += 1
        self.state = CollectionState.REFRESHING
        try:
            return await self._call_remote(fn, *args)
        finally:
            self._refreshing -= 1
            if self._refreshing == 0 and self.state is CollectionState.REFRESHING:
                # cancelled or not yet settled: fall back to the last known state
                self.state = CollectionState.STALE if self._serving_stale else CollectionState.IDLE

    async def _call_remote(self, fn: Callable[..., Any], *args: Any) -> Outcome[Any]:
        try:
            if inspect.iscoroutinefunction(fn):
                result = await fn(*args)
            else:
                result = await asyncio.to_thread(fn, *args)
                if inspect.isawaitable(result):
                    result = await result
        except Exception as exc:
            error = to_error(exc)
            self._log.debug("%s: remote %s failed: %r", self.collection, getattr(fn, "__name__", fn), exc)
            return error
        return Success(result)

    async def _write(
        self,
        apply: Callable[[Any], Outcome[T]],
        fn: Callable[..., Any],
        *args: Any,
    ) -> Outcome[T]:
        async def run() -> Outcome[T]:
            outcome = await self._call_remote(fn, *args)
            if isinstance(outcome, Error):
                self._log.info(
                    "%s: %s rejected (%s): %s",
                    self.collection,
                    getattr(fn, "__name__", "write"),
                    outcome.kind.value,
                    outcome.message,
                )
                return outcome
            try:
                return apply(outcome.value)
            except Exception as exc:
                self._log.error("%s: local store update failed: %r", self.collection, exc)
                return to_error(exc)

        task = asyncio.ensure_future(run())
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)
        return await asyncio.shield(task)

    def _apply_put(self, entity: E) -> Outcome[E]:
        self._mark_written(entity.id)
        self.store.put(self.collection, CacheEntry(entity, self._clock()))
        return Success(entity)

    def _write_through(self, query: Any, entities: List[E], seq: int) -> List[E]:
        now = self._clock()
        self.store.put_many(
            self.collection,
            [CacheEntry(e, now) for e in entities if not self._written_since(e.id, seq)],
        )
        if _is_complete_listing(query, entities):
            # a partial page cannot tell removed rows from shifted ones
            remote_ids = {entity.id for entity in entities}
            cached = [entry.entity for entry in self.store.all(self.collection)]
            vanished = [
                entity.id
                for entity in self.matching(query, cached)
                if entity.id not in remote_ids and not self._written_since(entity.id, seq)
            ]
            if vanished:
                self._log.debug("%s: evicting %d rows missing remotely", self.collection, len(vanished))
                self.store.delete_many(self.collection, vanished)
                self._forget_ids(vanished)
        ids = tuple(entity.id for entity in entities)
        self._records[query] = _QueryRecord(now, ids)

        result: List[E] = []
        for entity_id in ids:
            entry = self.store.get(self.collection, entity_id)
            if entry is not None:
                result.append(entry.entity)
        return result

    def _record_is_fresh(self, query: Any, now: datetime) -> bool:
        ttl = self.config.cache_expiry
        pages = [query]
        page = getattr(query, "page", 1)
        pages.extend(replace(query, page=p) for p in range(1, page))
        for candidate in pages:
            record = self._records.get(candidate)
            if record is None or now - record.fetched_at > ttl:
                return False
        return True

    def _local(self, query: Any, now: datetime) -> Tuple[List[E], bool]:
        entries = {entry.entity.id: entry for entry in self.store.all(self.collection)}
        result = self.evaluate(query, [entry.entity for entry in entries.values()])
        ttl = self.config.cache_expiry
        stale = any(not entries[entity.id].is_fresh(now, ttl) for entity in result)
        return result, stale

    def _stale_value(self, query: Any) -> Optional[List[E]]:
        result, _ = self._local(query, self._clock())
        if result or query in self._records:
            return result
        return None

    def _settle(self, *, stale: bool) -> None:
        self._serving_stale = stale
        if self._refreshing == 0:
            self.state = CollectionState.STALE if stale else CollectionState.IDLE

    def _mark_written(self, entity_id: str) -> None:
        self._write_seq += 1
        self._written_at[entity_id] = self._write_seq

    def _written_since(self, entity_id: str, seq: int) -> bool:
        return self._written_at.get(entity_id, 0) > seq

    def _forget_ids(self, entity_ids: Iterable[str]) -> None:
        doomed = set(entity_ids)
        for key in [k for k, record in self._records.items() if doomed.intersection(record.ids)]:
            del self._records[key]


def _is_complete_listing(query: Any, entities: List[Any]) -> bool:
    """True when ``entities`` is the first page and shorter than the limit."""
    limit = getattr(query, "limit", None)
    if limit is None:
        return True
    return getattr(query, "page", 1) == 1 and len(entities) < limit


__all__ = ["CacheAsideRepository", "CollectionState"]
