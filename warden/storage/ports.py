"""
Storage Port Interfaces

Abstract base classes defining the policy and role storage contracts.
All persistence APIs are async.

These ports follow the hexagonal architecture pattern:
- The Enforcer depends only on PolicyManager
- Adapters (in-memory, file, SQLAlchemy, cache) implement these interfaces
- Storage is injected via dependency inversion

Ordering: all() and the find_* methods return policies ascending by id.
Candidate retrieval (find_*) may be narrowed by an adapter for performance;
the baseline adapters return the full set and leave filtering to the
Enforcer.

Thread-safety: All implementations must be safe for concurrent async usage.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from warden.errors import UnsupportedOperationError
from warden.policy.model import Policy
from warden.request import Request
from warden.role import Role


def limit_indices(limit: int, offset: int, length: int) -> tuple[int, int]:
    """
    Clamp a limit/offset window to a sequence of the given length.

    Returns:
        (start, end) slice bounds
    """
    offset = max(offset, 0)
    limit = max(limit, 0)
    if offset > length:
        return length, length
    return offset, min(offset + limit, length)


# =============================================================================
# Policy Manager
# =============================================================================

class PolicyManager(ABC):
    """
    Storage interface for policies.
    """

    @abstractmethod
    async def create(self, policy: Policy) -> None:
        """
        Store a new policy.

        Raises:
            DuplicateIdError: If a policy with the same id exists
        """
        ...

    @abstractmethod
    async def update(self, policy: Policy) -> None:
        """
        Replace a stored policy.

        Raises:
            NotFoundError: If no policy has this id
        """
        ...

    @abstractmethod
    async def get(self, policy_id: str) -> Policy:
        """
        Get a policy by id.

        Raises:
            NotFoundError: If no policy has this id
        """
        ...

    @abstractmethod
    async def delete(self, policy_id: str) -> None:
        """
        Remove a policy by id.

        Raises:
            NotFoundError: If no policy has this id
        """
        ...

    @abstractmethod
    async def all(self, limit: int = 100, offset: int = 0) -> list[Policy]:
        """
        List policies ascending by id.

        Args:
            limit: Max results
            offset: Number of policies to skip

        Returns:
            Policies in the clamped window
        """
        ...

    @abstractmethod
    async def find_by_request(self, request: Request) -> list[Policy]:
        """Candidate policies for a request."""
        ...

    @abstractmethod
    async def find_by_role(self, role: str) -> list[Policy]:
        """Candidate policies for a role id."""
        ...

    @abstractmethod
    async def find_by_resource(self, resource: str) -> list[Policy]:
        """Candidate policies for a resource."""
        ...

    @abstractmethod
    async def find_by_scope(self, scope: str) -> list[Policy]:
        """Candidate policies for a scope."""
        ...

    async def close(self) -> None:
        """Release resources held by the manager."""
        pass


# =============================================================================
# Role Manager
# =============================================================================

class RoleManager(ABC):
    """
    Storage interface for roles.
    """

    @abstractmethod
    async def create(self, role: Role) -> None:
        """
        Store a new role.

        Raises:
            DuplicateIdError: If a role with the same id exists
        """
        ...

    @abstractmethod
    async def update(self, role: Role) -> None:
        """
        Replace a stored role.

        Raises:
            NotFoundError: If no role has this id
        """
        ...

    @abstractmethod
    async def get(self, role_id: str) -> Role:
        """
        Get a role by id.

        Raises:
            NotFoundError: If no role has this id
        """
        ...

    @abstractmethod
    async def get_by_name(self, name: str) -> Role:
        """
        Get the first role (ascending id) with this name.

        Raises:
            NotFoundError: If no role has this name
        """
        ...

    @abstractmethod
    async def delete(self, role_id: str) -> None:
        """
        Remove a role by id.

        Raises:
            NotFoundError: If no role has this id
        """
        ...

    @abstractmethod
    async def all(self, limit: int = 100, offset: int = 0) -> list[Role]:
        """List roles ascending by id within the clamped window."""
        ...

    async def get_matching(self, pattern: str) -> list[Role]:
        """
        Roles whose id matches a pattern.

        Optional: adapters that do not support it raise
        UnsupportedOperationError.
        """
        raise UnsupportedOperationError(
            f"{type(self).__name__} does not support get_matching"
        )

    async def close(self) -> None:
        """Release resources held by the manager."""
        pass


# =============================================================================
# Storage Bundle
# =============================================================================

@dataclass
class StorageBundle:
    """
    Container for the policy and role managers.

    Injected into the Enforcer and the HTTP service.
    """
    policies: PolicyManager
    roles: RoleManager

    async def close(self) -> None:
        """
        Close all storage connections.

        Called during shutdown.
        """
        await self.policies.close()
        await self.roles.close()
