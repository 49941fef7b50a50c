from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Type

from todo_data.domain.entities import ENTITY_TYPES, CacheEntry
from todo_data.domain.ports import LocalStore, StoreChange, StoreListener
from todo_data.domain.time_utils import format_timestamp, parse_timestamp


class StorageLocal(LocalStore):
    """Local cache of entities, one JSON file per collection.

    Without ``root_dir`` the store lives in memory only. Listeners are called
    synchronously, after the lock is released, for every mutation.
    """

    def __init__(
        self,
        root_dir: Optional[str] = None,
        *,
        entity_types: Optional[Mapping[str, Type[Any]]] = None,
    ) -> None:
        self.root = root_dir
        self._types: Dict[str, Type[Any]] = dict(entity_types or ENTITY_TYPES)
        self._lock = threading.RLock()
        self._data: Dict[str, Dict[str, CacheEntry[Any]]] = {}
        self._listeners: List[StoreListener] = []
        self._log = logging.getLogger(__name__)
        if self.root:
            os.makedirs(self.root, exist_ok=True)

    # ---- Reads ----
    def get(self, collection: str, entity_id: str) -> Optional[CacheEntry[Any]]:
        with self._lock:
            return self._collection(collection).get(entity_id)

    def all(self, collection: str) -> List[CacheEntry[Any]]:
        with self._lock:
            return list(self._collection(collection).values())

    # ---- Writes ----
    def put(self, collection: str, entry: CacheEntry[Any]) -> None:
        self.put_many(collection, [entry])

    def put_many(self, collection: str, entries: Iterable[CacheEntry[Any]]) -> None:
        entries = list(entries)
        if not entries:
            return
        with self._lock:
            items = self._collection(collection)
            for entry in entries:
                items[entry.entity.id] = entry
            self._persist(collection)
        self._notify(StoreChange(collection, "put", tuple(e.entity.id for e in entries)))

    def delete(self, collection: str, entity_id: str) -> None:
        self.delete_many(collection, [entity_id])

    def delete_many(self, collection: str, entity_ids: Iterable[str]) -> None:
        with self._lock:
            items = self._collection(collection)
            removed = tuple(eid for eid in entity_ids if items.pop(eid, None) is not None)
            if removed:
                self._persist(collection)
        if removed:
            self._notify(StoreChange(collection, "delete", removed))

    def clear(self, collection: str) -> None:
        with self._lock:
            items = self._collection(collection)
            removed = tuple(items.keys())
            items.clear()
            self._persist(collection)
        self._notify(StoreChange(collection, "clear", removed))

    # ---- Change notification ----
    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, change: StoreChange) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(change)

    # ---- Persistence (JSON) ----
    def _collection(self, collection: str) -> Dict[str, CacheEntry[Any]]:
        items = self._data.get(collection)
        if items is None:
            items = self._load(collection)
            self._data[collection] = items
        return items

    def _path(self, collection: str) -> str:
        return os.path.join(self.root or ".", f"{collection}.json")

    def _load(self, collection: str) -> Dict[str, CacheEntry[Any]]:
        if not self.root:
            return {}
        path = self._path(collection)
        if not os.path.exists(path):
            return {}
        entity_type = self._types[collection]
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        items: Dict[str, CacheEntry[Any]] = {}
        for record in raw.get("entries", []):
            try:
                entity = entity_type.from_payload(record["entity"])
                cached_at = parse_timestamp(record["cachedAt"])
            except (KeyError, TypeError, ValueError) as exc:
                self._log.warning("Dropping unreadable %s cache record: %s", collection, exc)
                continue
            items[entity.id] = CacheEntry(entity, cached_at)
        return items

    def _persist(self, collection: str) -> None:
        if not self.root:
            return
        payload = {
            "entries": [
                {"entity": entry.entity.to_payload(), "cachedAt": format_timestamp(entry.cached_at)}
                for entry in self._data.get(collection, {}).values()
            ]
        }
        fd, tmp_path = tempfile.mkstemp(prefix=f".{collection}.", suffix=".tmp", dir=self.root)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self._path(collection))
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


__all__ = ["StorageLocal"]
