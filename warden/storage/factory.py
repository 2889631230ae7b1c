"""
Storage Factory

Environment-based configuration and factory for storage adapters.
Returns a StorageBundle with appropriate implementations based on settings.

Supported backends:
- memory: In-memory storage (development/testing)
- file: JSON documents on disk (<name>.policy, <name>.roles)
- sqlite: SQLite with aiosqlite (single-node production)
- postgresql: PostgreSQL with asyncpg (distributed production)
- mysql: MySQL with aiomysql (distributed production)

Any backend's policy manager can be wrapped in a TTL cache by setting
cache_ttl_seconds.

Usage:
    # From environment
    bundle = await create_storage_from_env()

    # From settings
    settings = StorageSettings(database_url="postgresql+asyncpg://...")
    bundle = await create_storage(settings)

    # Use in the enforcer
    enforcer = Enforcer(bundle.policies)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from warden.condition import ConditionRegistry
from warden.config import parse_bool
from warden.errors import ConfigurationError

from .cache import CachedPolicyManager
from .file import FileStorage
from .memory import InMemoryPolicyManager, InMemoryRoleManager
from .models import Base
from .ports import PolicyManager, RoleManager, StorageBundle
from .sqlalchemy import SqlAlchemyPolicyManager, SqlAlchemyRoleManager

logger = logging.getLogger(__name__)


class StorageBackend(str, Enum):
    """Supported storage backends."""
    MEMORY = "memory"
    FILE = "file"
    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"


SQL_BACKENDS = {StorageBackend.SQLITE, StorageBackend.POSTGRESQL, StorageBackend.MYSQL}


@dataclass
class StorageSettings:
    """
    Configuration for storage layer.

    Attributes:
        backend: Storage backend type
        database_url: SQLAlchemy async connection URL (for SQL backends)
        storage_path: Directory for the file backend
        storage_name: File name stem for the file backend
        pool_size: Connection pool size for SQL
        pool_max_overflow: Max overflow for connection pool
        echo_sql: Whether to log SQL queries
        create_tables: Whether to auto-create tables on startup
        cache_ttl_seconds: Wrap the policy manager in a TTL cache when > 0
        cache_max_entries: Size bound of the policy cache
        strict_conditions: Raise on unregistered condition types when loading
    """
    backend: StorageBackend = StorageBackend.MEMORY
    database_url: str | None = None
    storage_path: str = "."
    storage_name: str = "warden"
    pool_size: int = 5
    pool_max_overflow: int = 10
    echo_sql: bool = False
    create_tables: bool = True
    cache_ttl_seconds: float = 0.0
    cache_max_entries: int = 10000
    strict_conditions: bool = False


@dataclass
class StorageBundleImpl(StorageBundle):
    """
    StorageBundle implementation with cleanup support.
    """
    policies: PolicyManager
    roles: RoleManager
    _engine: AsyncEngine | None = field(default=None, repr=False)

    async def close(self) -> None:
        """Close all storage connections."""
        await self.policies.close()
        await self.roles.close()
        if self._engine:
            await self._engine.dispose()


def _parse_database_url(url: str) -> StorageBackend:
    """Determine backend from database URL."""
    if url.startswith("sqlite"):
        return StorageBackend.SQLITE
    elif url.startswith("postgresql") or url.startswith("postgres"):
        return StorageBackend.POSTGRESQL
    elif url.startswith("mysql"):
        return StorageBackend.MYSQL
    else:
        raise ConfigurationError(f"Unsupported database URL scheme: {url}")


def _async_url(backend: StorageBackend, url: str) -> str:
    """Ensure the async driver is named in the URL."""
    if backend == StorageBackend.SQLITE:
        if "+aiosqlite" not in url:
            url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    elif backend == StorageBackend.POSTGRESQL:
        if "+asyncpg" not in url:
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
            url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif backend == StorageBackend.MYSQL:
        if "+aiomysql" not in url:
            url = url.replace("mysql://", "mysql+aiomysql://", 1)
    return url


def _env_number(name: str, default: str, cast):
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


def settings_from_env(load_env_file: bool = True) -> StorageSettings:
    """
    Create StorageSettings from environment variables.

    Environment variables:
        WARDEN_STORAGE_BACKEND: "memory", "file", "sqlite", "postgresql", "mysql"
        WARDEN_DATABASE_URL: SQLAlchemy async connection URL
        WARDEN_STORAGE_PATH: Directory for the file backend
        WARDEN_STORAGE_NAME: File name stem for the file backend
        WARDEN_POOL_SIZE: Connection pool size
        WARDEN_POOL_MAX_OVERFLOW: Max pool overflow
        WARDEN_ECHO_SQL: "true" to log SQL
        WARDEN_CREATE_TABLES: "false" to disable table creation
        WARDEN_CACHE_TTL: Policy cache TTL in seconds (0 disables)
        WARDEN_CACHE_MAX_ENTRIES: Policy cache size bound
        WARDEN_STRICT_CONDITIONS: "true" to reject unregistered condition types
    """
    if load_env_file:
        load_dotenv()

    database_url = os.getenv("WARDEN_DATABASE_URL")
    backend_str = os.getenv("WARDEN_STORAGE_BACKEND", "memory").strip().lower()

    # Auto-detect backend from URL if provided
    if database_url and backend_str == "memory":
        backend = _parse_database_url(database_url)
    else:
        try:
            backend = StorageBackend(backend_str)
        except ValueError as e:
            raise ConfigurationError(f"Unsupported storage backend: {backend_str}") from e

    return StorageSettings(
        backend=backend,
        database_url=database_url,
        storage_path=os.getenv("WARDEN_STORAGE_PATH", "."),
        storage_name=os.getenv("WARDEN_STORAGE_NAME", "warden"),
        pool_size=_env_number("WARDEN_POOL_SIZE", "5", int),
        pool_max_overflow=_env_number("WARDEN_POOL_MAX_OVERFLOW", "10", int),
        echo_sql=parse_bool(os.getenv("WARDEN_ECHO_SQL"), False),
        create_tables=parse_bool(os.getenv("WARDEN_CREATE_TABLES"), True),
        cache_ttl_seconds=_env_number("WARDEN_CACHE_TTL", "0", float),
        cache_max_entries=_env_number("WARDEN_CACHE_MAX_ENTRIES", "10000", int),
        strict_conditions=parse_bool(os.getenv("WARDEN_STRICT_CONDITIONS"), False),
    )


async def create_storage(
    settings: StorageSettings,
    registry: ConditionRegistry | None = None,
) -> StorageBundle:
    """
    Create storage bundle from settings.

    Args:
        settings: Storage configuration
        registry: Condition registry used to rebuild stored policies

    Returns:
        Configured StorageBundle

    Raises:
        ConfigurationError: If settings are invalid
    """
    engine: AsyncEngine | None = None
    policies: PolicyManager
    roles: RoleManager

    if settings.backend == StorageBackend.MEMORY:
        policies = InMemoryPolicyManager()
        roles = InMemoryRoleManager()

    elif settings.backend == StorageBackend.FILE:
        storage = FileStorage(settings.storage_name, settings.storage_path)
        policies = storage.policy_manager(registry, settings.strict_conditions)
        roles = storage.role_manager()

    elif settings.backend in SQL_BACKENDS:
        if not settings.database_url:
            raise ConfigurationError(
                f"database_url required for backend {settings.backend.value}"
            )
        url = _async_url(settings.backend, settings.database_url)

        engine_args: dict = {"echo": settings.echo_sql}
        # SQLite uses a static/null pool that rejects sizing arguments
        if settings.backend != StorageBackend.SQLITE:
            engine_args["pool_size"] = settings.pool_size
            engine_args["max_overflow"] = settings.pool_max_overflow
        engine = create_async_engine(url, **engine_args)

        # Create tables if requested
        if settings.create_tables:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        policies = SqlAlchemyPolicyManager(
            session_factory, registry, settings.strict_conditions
        )
        roles = SqlAlchemyRoleManager(session_factory)

    else:
        raise ConfigurationError(f"Unsupported storage backend: {settings.backend}")

    if settings.cache_ttl_seconds > 0:
        policies = CachedPolicyManager(
            policies, settings.cache_ttl_seconds, max_entries=settings.cache_max_entries
        )

    logger.info(f"Storage initialized: backend={settings.backend.value}")
    return StorageBundleImpl(policies=policies, roles=roles, _engine=engine)


async def create_storage_from_env(
    registry: ConditionRegistry | None = None,
) -> StorageBundle:
    """
    Create storage bundle from environment variables.

    Convenience function that combines settings_from_env() and create_storage().

    Returns:
        Configured StorageBundle
    """
    settings = settings_from_env()
    return await create_storage(settings, registry)


# Convenience for quick setup
async def create_memory_storage() -> StorageBundle:
    """Create in-memory storage bundle (for testing)."""
    return await create_storage(StorageSettings(backend=StorageBackend.MEMORY))


async def create_file_storage(
    path: str = ".",
    name: str = "warden",
    registry: ConditionRegistry | None = None,
) -> StorageBundle:
    """Create file storage bundle."""
    return await create_storage(
        StorageSettings(backend=StorageBackend.FILE, storage_path=path, storage_name=name),
        registry,
    )


async def create_sqlite_storage(
    path: str = ":memory:",
    create_tables: bool = True,
    registry: ConditionRegistry | None = None,
) -> StorageBundle:
    """Create SQLite storage bundle."""
    url = f"sqlite+aiosqlite:///{path}"
    return await create_storage(
        StorageSettings(
            backend=StorageBackend.SQLITE,
            database_url=url,
            create_tables=create_tables,
        ),
        registry,
    )
