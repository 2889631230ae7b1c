"""
In-Memory Storage Adapters

Concurrency-safe implementations for development and testing.
Uses an async reader-writer lock: unlimited concurrent readers, exclusive
writers.

These adapters store everything in memory and are lost on restart.
Use for:
- Local development
- Unit/integration testing
- Single-node deployments that load policies at startup
"""

from warden.errors import DuplicateIdError, NotFoundError
from warden.policy.model import Policy
from warden.request import Request
from warden.role import Role
from warden.storage.locks import AsyncRWLock
from warden.storage.ports import PolicyManager, RoleManager, limit_indices
from warden.strmatch import match_wildcard


class InMemoryPolicyManager(PolicyManager):
    """
    In-memory policy storage.

    Candidate retrieval returns the full set ascending by id.
    """

    def __init__(self):
        self._policies: dict[str, Policy] = {}
        self._lock = AsyncRWLock()

    async def create(self, policy: Policy) -> None:
        async with self._lock.write():
            if policy.id in self._policies:
                raise DuplicateIdError(f"policy {policy.id} already registered")
            self._policies[policy.id] = policy

    async def update(self, policy: Policy) -> None:
        async with self._lock.write():
            if policy.id not in self._policies:
                raise NotFoundError(f"policy {policy.id} does not exist")
            self._policies[policy.id] = policy

    async def get(self, policy_id: str) -> Policy:
        async with self._lock.read():
            policy = self._policies.get(policy_id)
        if policy is None:
            raise NotFoundError(f"policy {policy_id} does not exist")
        return policy

    async def delete(self, policy_id: str) -> None:
        async with self._lock.write():
            if self._policies.pop(policy_id, None) is None:
                raise NotFoundError(f"policy {policy_id} does not exist")

    async def all(self, limit: int = 100, offset: int = 0) -> list[Policy]:
        async with self._lock.read():
            keys = sorted(self._policies)
            start, end = limit_indices(limit, offset, len(keys))
            return [self._policies[k] for k in keys[start:end]]

    async def _find_all(self) -> list[Policy]:
        async with self._lock.read():
            return [self._policies[k] for k in sorted(self._policies)]

    async def find_by_request(self, request: Request) -> list[Policy]:
        return await self._find_all()

    async def find_by_role(self, role: str) -> list[Policy]:
        return await self._find_all()

    async def find_by_resource(self, resource: str) -> list[Policy]:
        return await self._find_all()

    async def find_by_scope(self, scope: str) -> list[Policy]:
        return await self._find_all()

    def __len__(self) -> int:
        return len(self._policies)


class InMemoryRoleManager(RoleManager):
    """
    In-memory role storage.

    Supports get_matching() with strict wildcard patterns on role ids.
    """

    def __init__(self):
        self._roles: dict[str, Role] = {}
        self._lock = AsyncRWLock()

    async def create(self, role: Role) -> None:
        async with self._lock.write():
            if role.id in self._roles:
                raise DuplicateIdError(f"role {role.id} already registered")
            self._roles[role.id] = role

    async def update(self, role: Role) -> None:
        async with self._lock.write():
            if role.id not in self._roles:
                raise NotFoundError(f"role {role.id} does not exist")
            self._roles[role.id] = role

    async def get(self, role_id: str) -> Role:
        async with self._lock.read():
            role = self._roles.get(role_id)
        if role is None:
            raise NotFoundError(f"role {role_id} does not exist")
        return role

    async def get_by_name(self, name: str) -> Role:
        async with self._lock.read():
            for key in sorted(self._roles):
                if self._roles[key].name == name:
                    return self._roles[key]
        raise NotFoundError(f"role {name} does not exist")

    async def delete(self, role_id: str) -> None:
        async with self._lock.write():
            if self._roles.pop(role_id, None) is None:
                raise NotFoundError(f"role {role_id} does not exist")

    async def all(self, limit: int = 100, offset: int = 0) -> list[Role]:
        async with self._lock.read():
            keys = sorted(self._roles)
            start, end = limit_indices(limit, offset, len(keys))
            return [self._roles[k] for k in keys[start:end]]

    async def get_matching(self, pattern: str) -> list[Role]:
        async with self._lock.read():
            return [
                self._roles[k]
                for k in sorted(self._roles)
                if match_wildcard(pattern, k)
            ]
