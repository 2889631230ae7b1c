"""
Subjects and Requests

A Subject is the requester's identity and role memberships. A Request is
what gets matched against the policy set: resource, action, subject, scope
and a read-only metadata mapping consumed by conditions.

Requests are built once per call and never mutated during evaluation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping

from warden.role import Role


# =============================================================================
# Subject
# =============================================================================

SubjectOption = Callable[["Subject"], None]


def subject_name(name: str) -> SubjectOption:
    """Set the subject display name."""
    def apply(subject: Subject) -> None:
        subject.name = name
    return apply


def subject_role(*roles: Role) -> SubjectOption:
    """Grant roles to the subject. Role ids already held are skipped."""
    def apply(subject: Subject) -> None:
        subject.add_roles(*roles)
    return apply


def subject_meta(*meta: Mapping[str, Any]) -> SubjectOption:
    """Merge metadata maps into the subject meta, later keys win."""
    def apply(subject: Subject) -> None:
        for md in meta:
            subject.meta.update(md)
    return apply


@dataclass
class Subject:
    """
    The identity making a request.

    roles holds the directly granted roles; each is unique by id.
    """
    id: str
    name: str = ""
    roles: list[Role] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)

    def add_roles(self, *roles: Role) -> None:
        held = {role.id for role in self.roles}
        for role in roles:
            if role.id not in held:
                self.roles.append(role)
                held.add(role.id)

    def effective_roles(self) -> list[Role]:
        """Effective roles of every held role, deduplicated by id."""
        effective: list[Role] = []
        seen: set[str] = set()
        for role in self.roles:
            for er in role.effective_roles():
                if er.id not in seen:
                    seen.add(er.id)
                    effective.append(er)
        return effective

    def role_queries(self) -> list[str]:
        """
        Strings matched against policy roles.

        The ids of the directly held roles, or the subject id itself for a
        subject without roles (a bare role string passed as the subject).
        """
        if self.roles:
            return [role.id for role in self.roles]
        return [self.id]

    def __str__(self) -> str:
        return self.id


def new_subject(id: str, *opts: SubjectOption) -> Subject:
    """Build a Subject configured with the provided options."""
    subject = Subject(id=id)
    for opt in opts:
        opt(subject)
    return subject


# =============================================================================
# Request
# =============================================================================

def new_request_context(*meta: Mapping[str, Any] | None) -> Mapping[str, Any]:
    """
    Merge metadata maps into a read-only request context.

    None entries are ignored; later maps override earlier keys.
    """
    merged: dict[str, Any] = {}
    for md in meta:
        if md:
            merged.update(md)
    return MappingProxyType(merged)


@dataclass(frozen=True)
class Request:
    """
    A request to be matched against a policy set.
    """
    resource: str
    action: str
    subject: Subject
    scope: str = ""
    metadata: Mapping[str, Any] = field(default_factory=new_request_context)

    def role_queries(self) -> list[str]:
        return self.subject.role_queries()


def new_request(
    resource: str,
    action: str,
    subject: Subject | str,
    scope: str = "",
    *meta: Mapping[str, Any] | None,
) -> Request:
    """
    Build a Request.

    Args:
        resource: Resource being accessed
        action: Action being performed
        subject: Requesting Subject, or a plain role string
        scope: Optional scope
        *meta: Metadata maps merged into the request context

    Returns:
        Immutable Request
    """
    if isinstance(subject, str):
        subject = Subject(id=subject)

    return Request(
        resource=resource,
        action=action,
        subject=subject,
        scope=scope,
        metadata=new_request_context(*meta),
    )
