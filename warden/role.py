"""
Role Graph

A Role is a named association to a set of permissionable capabilities.
Roles nest: every role may hold sub roles, and the same Role instance may be
shared by several parents, policies and subjects.

Insertion rules (enforced by add_role only):
- A role cannot list itself as a direct child
- A role cannot list the same child id twice

Nothing prevents cycles built through shared references (A -> B -> A), so
effective_roles() walks the graph with a visited-id set and never assumes
the graph is acyclic.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from warden.errors import DuplicateRoleError


class Role(BaseModel):
    """
    A node in the role hierarchy.

    The JSON shape is {id, name, description, roles}, where roles holds the
    direct sub roles in insertion order.
    """

    id: str = Field(
        ...,
        description="Unique role identifier"
    )
    name: str = Field(
        default="",
        description="Human-readable role name"
    )
    description: str = Field(
        default="",
        description="Optional description of the role"
    )
    roles: list[Role] = Field(
        default_factory=list,
        description="Direct sub roles"
    )

    def add_role(self, role: Role) -> None:
        """
        Add a direct sub role.

        Raises:
            DuplicateRoleError: If the sub role id matches this role or an
                existing direct child
        """
        if role.id == self.id:
            raise DuplicateRoleError(f"sub role id {role.id} cannot match parent")

        for child in self.roles:
            if child.id == role.id:
                raise DuplicateRoleError(f"{self.id} already contains role {role.id}")

        self.roles.append(role)

    def effective_roles(self) -> list[Role]:
        """
        Flatten this role and every transitively reachable sub role.

        Depth-first, pre-order, deduplicated by id. Terminates on cyclic
        graphs because a role id is expanded at most once.
        """
        effective: list[Role] = []
        visited: set[str] = set()
        stack: list[Role] = [self]

        while stack:
            role = stack.pop()
            if role.id in visited:
                continue
            visited.add(role.id)
            effective.append(role)
            # Reversed so children are expanded in declaration order
            stack.extend(reversed(role.roles))

        return effective

    def effective_ids(self) -> list[str]:
        """Ids of effective_roles(), in traversal order."""
        return [role.id for role in self.effective_roles()]

    def __str__(self) -> str:
        return self.id


def new_role(
    id: str,
    *roles: Role,
    name: str = "",
    description: str = "",
) -> Role:
    """Build a Role holding the given sub roles."""
    return Role(id=id, name=name, description=description, roles=list(roles))
