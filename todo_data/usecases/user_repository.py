from __future__ import annotations

from typing import Optional

from todo_data.domain.entities import User
from todo_data.domain.outcome import Outcome, Success
from todo_data.usecases.cache_aside import CacheAsideRepository


class UserRepository(CacheAsideRepository[User]):
    collection = "users"

    def find_by_phone_number(self, phone_number: str) -> Outcome[Optional[User]]:
        """Cached user registered with ``phone_number``, if any."""
        wanted = phone_number.strip()
        for entry in self.store.all(self.collection):
            if entry.entity.phone_number == wanted:
                fresh = entry.is_fresh(self._clock(), self.config.cache_expiry)
                return Success(entry.entity, stale=not fresh)
        return Success(None)


__all__ = ["UserRepository"]
