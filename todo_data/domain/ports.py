from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, List, Optional, Protocol, Tuple, TypeVar

from todo_data.domain.entities import CacheEntry

E = TypeVar("E")
EntityId = str
Collection = str


# ---- Store notifications ----
@dataclass(frozen=True)
class StoreChange:
    """A mutation applied to one collection of the local store."""

    collection: Collection
    action: str  # "put", "delete" or "clear"
    ids: Tuple[EntityId, ...] = ()


StoreListener = Callable[[StoreChange], None]


# ---- Ports (Hexagonal boundaries) ----
class RemoteSource(Protocol, Generic[E]):
    """Source of truth for one entity collection.

    Methods may be plain or ``async``. Failures are raised untranslated
    (``ApiError`` family, ``requests`` exceptions, OS errors); repositories
    classify them.
    """

    def fetch(self, query: Any) -> List[E]: ...
    def fetch_by_id(self, entity_id: EntityId) -> E: ...
    def create(self, params: Any) -> E: ...
    def update(self, params: Any) -> E: ...
    def delete(self, entity_id: EntityId) -> None: ...


class LocalStore(Protocol):
    """Synchronous CRUD over cache entries plus change notification."""

    def get(self, collection: Collection, entity_id: EntityId) -> Optional[CacheEntry[Any]]: ...
    def all(self, collection: Collection) -> List[CacheEntry[Any]]: ...
    def put(self, collection: Collection, entry: CacheEntry[Any]) -> None: ...
    def put_many(self, collection: Collection, entries: Iterable[CacheEntry[Any]]) -> None: ...
    def delete(self, collection: Collection, entity_id: EntityId) -> None: ...
    def delete_many(self, collection: Collection, entity_ids: Iterable[EntityId]) -> None: ...
    def clear(self, collection: Collection) -> None: ...
    def subscribe(self, listener: StoreListener) -> Callable[[], None]: ...


__all__ = [
    "Collection",
    "EntityId",
    "LocalStore",
    "RemoteSource",
    "StoreChange",
    "StoreListener",
]
