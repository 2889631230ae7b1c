"""
Cached Policy Manager

Read-through cache in front of another PolicyManager. Writes go straight
to the wrapped manager and clear the whole cache, since any write can
change the result of every find_* query. Entries also expire after
ttl_seconds.

- Each write bumps a generation counter; a read that was in flight across
  a write returns its result but does not store it
- Entries are kept in insertion order, so expired ones sit at the front
  and are swept on every insert
- Past max_entries the oldest entries are evicted
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from warden.policy.model import Policy
from warden.request import Request
from warden.storage.ports import PolicyManager

logger = logging.getLogger(__name__)


class CachedPolicyManager(PolicyManager):
    """
    TTL cache decorator for a PolicyManager.

    Args:
        manager: Backing manager
        ttl_seconds: Lifetime of a cached entry (must be positive)
        clock: Monotonic time source, injectable for tests
        max_entries: Cache size before the oldest entries are evicted
    """

    def __init__(
        self,
        manager: PolicyManager,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = 10000,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._manager = manager
        self._ttl = ttl_seconds
        self._clock = clock
        self._max_entries = max_entries
        self._entries: dict[tuple, tuple[float, Any]] = {}
        self._generation = 0

    @property
    def manager(self) -> PolicyManager:
        return self._manager

    def invalidate(self) -> None:
        """Drop every cached entry."""
        self._generation += 1
        self._entries.clear()

    def _store(self, key: tuple, expires: float, value: Any, now: float) -> None:
        self._entries.pop(key, None)
        while self._entries:
            oldest = next(iter(self._entries))
            if self._entries[oldest][0] > now:
                break
            del self._entries[oldest]
        self._entries[key] = (expires, value)
        while len(self._entries) > self._max_entries:
            del self._entries[next(iter(self._entries))]

    async def _cached(self, key: tuple, load):
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None and entry[0] > now:
            return entry[1]
        generation = self._generation
        value = await load()
        if generation == self._generation:
            self._store(key, now + self._ttl, value, self._clock())
        else:
            logger.debug(f"Not caching {key[0]} lookup: policies changed while loading")
        return value

    # Writes

    async def create(self, policy: Policy) -> None:
        await self._manager.create(policy)
        self.invalidate()

    async def update(self, policy: Policy) -> None:
        await self._manager.update(policy)
        self.invalidate()

    async def delete(self, policy_id: str) -> None:
        try:
            await self._manager.delete(policy_id)
        finally:
            self.invalidate()

    # Reads

    async def get(self, policy_id: str) -> Policy:
        return await self._cached(("get", policy_id), lambda: self._manager.get(policy_id))

    async def all(self, limit: int = 100, offset: int = 0) -> list[Policy]:
        result = await self._cached(
            ("all", limit, offset), lambda: self._manager.all(limit, offset)
        )
        return list(result)

    async def find_by_request(self, request: Request) -> list[Policy]:
        key = (
            "request",
            request.resource,
            request.action,
            request.scope,
            tuple(request.role_queries()),
        )
        result = await self._cached(key, lambda: self._manager.find_by_request(request))
        return list(result)

    async def find_by_role(self, role: str) -> list[Policy]:
        result = await self._cached(("role", role), lambda: self._manager.find_by_role(role))
        return list(result)

    async def find_by_resource(self, resource: str) -> list[Policy]:
        result = await self._cached(
            ("resource", resource), lambda: self._manager.find_by_resource(resource)
        )
        return list(result)

    async def find_by_scope(self, scope: str) -> list[Policy]:
        result = await self._cached(("scope", scope), lambda: self._manager.find_by_scope(scope))
        return list(result)

    async def close(self) -> None:
        self.invalidate()
        await self._manager.close()

    def __len__(self) -> int:
        return len(self._entries)
