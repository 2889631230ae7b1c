"""
SQLAlchemy Storage Adapters

Async SQLAlchemy 2.0 implementations for production persistence.
Uses async engine and session for all operations.

Compatible with:
- SQLite (aiosqlite)
- PostgreSQL (asyncpg)
- MySQL (aiomysql)

All operations are async. No sync DB calls.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from warden.condition import ConditionRegistry
from warden.errors import DuplicateIdError, NotFoundError, StorageError
from warden.policy.model import Policy
from warden.request import Request
from warden.role import Role
from warden.storage.models import PolicyModel, RoleModel
from warden.storage.ports import PolicyManager, RoleManager
from warden.strmatch import match_wildcard

logger = logging.getLogger(__name__)


# =============================================================================
# Converters
# =============================================================================

def policy_to_model(policy: Policy) -> PolicyModel:
    """Convert a Policy to its SQLAlchemy model."""
    return PolicyModel(
        id=policy.id,
        description=policy.description,
        effect=policy.effect.value,
        document=policy.to_dict(),
    )


def model_to_policy(
    model: PolicyModel,
    registry: ConditionRegistry | None = None,
    strict_conditions: bool = False,
) -> Policy:
    """Convert a SQLAlchemy model back to a Policy."""
    return Policy.from_dict(model.document, registry, strict_conditions)


def role_to_model(role: Role) -> RoleModel:
    """Convert a Role to its SQLAlchemy model."""
    return RoleModel(
        id=role.id,
        name=role.name,
        description=role.description,
        document=role.model_dump(mode="json"),
    )


def model_to_role(model: RoleModel) -> Role:
    """Convert a SQLAlchemy model back to a Role."""
    try:
        return Role.model_validate(model.document)
    except ValidationError as e:
        raise StorageError(f"invalid role document for {model.id}: {e}") from e


def _window(limit: int, offset: int) -> tuple[int, int]:
    return max(limit, 0), max(offset, 0)


# =============================================================================
# Policy Manager
# =============================================================================

class SqlAlchemyPolicyManager(PolicyManager):
    """
    SQLAlchemy-backed policy storage.

    Candidate retrieval returns every stored policy ascending by id.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: ConditionRegistry | None = None,
        strict_conditions: bool = False,
    ):
        self._session_factory = session_factory
        self._registry = registry
        self._strict = strict_conditions

    def _convert(self, model: PolicyModel) -> Policy:
        return model_to_policy(model, self._registry, self._strict)

    async def create(self, policy: Policy) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                existing = await session.get(PolicyModel, policy.id)
                if existing is not None:
                    raise DuplicateIdError(f"policy {policy.id} already registered")
                session.add(policy_to_model(policy))
        logger.debug(f"Stored policy {policy.id}")

    async def update(self, policy: Policy) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                existing = await session.get(PolicyModel, policy.id)
                if existing is None:
                    raise NotFoundError(f"policy {policy.id} does not exist")

                existing.description = policy.description
                existing.effect = policy.effect.value
                existing.document = policy.to_dict()

    async def get(self, policy_id: str) -> Policy:
        async with self._session_factory() as session:
            model = await session.get(PolicyModel, policy_id)
            if model is None:
                raise NotFoundError(f"policy {policy_id} does not exist")
            return self._convert(model)

    async def delete(self, policy_id: str) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                model = await session.get(PolicyModel, policy_id)
                if model is None:
                    raise NotFoundError(f"policy {policy_id} does not exist")
                await session.delete(model)

    async def all(self, limit: int = 100, offset: int = 0) -> list[Policy]:
        limit, offset = _window(limit, offset)
        async with self._session_factory() as session:
            result = await session.execute(
                select(PolicyModel).order_by(PolicyModel.id).offset(offset).limit(limit)
            )
            return [self._convert(m) for m in result.scalars().all()]

    async def _find_all(self) -> list[Policy]:
        async with self._session_factory() as session:
            result = await session.execute(select(PolicyModel).order_by(PolicyModel.id))
            return [self._convert(m) for m in result.scalars().all()]

    async def find_by_request(self, request: Request) -> list[Policy]:
        return await self._find_all()

    async def find_by_role(self, role: str) -> list[Policy]:
        return await self._find_all()

    async def find_by_resource(self, resource: str) -> list[Policy]:
        return await self._find_all()

    async def find_by_scope(self, scope: str) -> list[Policy]:
        return await self._find_all()


# =============================================================================
# Role Manager
# =============================================================================

class SqlAlchemyRoleManager(RoleManager):
    """
    SQLAlchemy-backed role storage.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, role: Role) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                existing = await session.get(RoleModel, role.id)
                if existing is not None:
                    raise DuplicateIdError(f"role {role.id} already registered")
                session.add(role_to_model(role))

    async def update(self, role: Role) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                existing = await session.get(RoleModel, role.id)
                if existing is None:
                    raise NotFoundError(f"role {role.id} does not exist")

                existing.name = role.name
                existing.description = role.description
                existing.document = role.model_dump(mode="json")

    async def get(self, role_id: str) -> Role:
        async with self._session_factory() as session:
            model = await session.get(RoleModel, role_id)
            if model is None:
                raise NotFoundError(f"role {role_id} does not exist")
            return model_to_role(model)

    async def get_by_name(self, name: str) -> Role:
        async with self._session_factory() as session:
            result = await session.execute(
                select(RoleModel).where(RoleModel.name == name).order_by(RoleModel.id).limit(1)
            )
            model = result.scalars().first()
            if model is None:
                raise NotFoundError(f"role {name} does not exist")
            return model_to_role(model)

    async def delete(self, role_id: str) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                model = await session.get(RoleModel, role_id)
                if model is None:
                    raise NotFoundError(f"role {role_id} does not exist")
                await session.delete(model)

    async def all(self, limit: int = 100, offset: int = 0) -> list[Role]:
        limit, offset = _window(limit, offset)
        async with self._session_factory() as session:
            result = await session.execute(
                select(RoleModel).order_by(RoleModel.id).offset(offset).limit(limit)
            )
            return [model_to_role(m) for m in result.scalars().all()]

    async def get_matching(self, pattern: str) -> list[Role]:
        # Matched in Python with the strict wildcard rules, not SQL LIKE.
        async with self._session_factory() as session:
            result = await session.execute(select(RoleModel).order_by(RoleModel.id))
            models: list[Any] = result.scalars().all()
        return [model_to_role(m) for m in models if match_wildcard(pattern, m.id)]
