# Storage Layer
# Pluggable persistence for policies and roles
#
# This module provides:
# - Port interfaces (ABCs) defining storage contracts
# - In-memory implementations for development/testing
# - JSON file implementations for small deployments
# - SQLAlchemy implementations for production persistence
# - A TTL cache wrapper for any policy manager
# - Factory for configuration-based adapter selection

from .ports import (
    PolicyManager,
    RoleManager,
    StorageBundle,
    limit_indices,
)
from .memory import InMemoryPolicyManager, InMemoryRoleManager
from .file import FileStorage, FilePolicyManager, FileRoleManager
from .sqlalchemy import SqlAlchemyPolicyManager, SqlAlchemyRoleManager
from .cache import CachedPolicyManager
from .factory import (
    StorageSettings,
    StorageBackend,
    create_storage,
    create_storage_from_env,
    create_memory_storage,
    create_file_storage,
    create_sqlite_storage,
    settings_from_env,
)

__all__ = [
    # Ports
    "PolicyManager",
    "RoleManager",
    "StorageBundle",
    "limit_indices",
    # Adapters
    "InMemoryPolicyManager",
    "InMemoryRoleManager",
    "FileStorage",
    "FilePolicyManager",
    "FileRoleManager",
    "SqlAlchemyPolicyManager",
    "SqlAlchemyRoleManager",
    "CachedPolicyManager",
    # Factory
    "StorageSettings",
    "StorageBackend",
    "create_storage",
    "create_storage_from_env",
    "create_memory_storage",
    "create_file_storage",
    "create_sqlite_storage",
    "settings_from_env",
]
