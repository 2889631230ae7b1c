"""
File Storage Adapters

JSON document storage for policies and roles, one file per kind:
- <path>/<name>.policy: {policy_id: policy JSON shape}
- <path>/<name>.roles: {role_id: role JSON}

Missing documents are created as {} when a manager is built. Every
operation reloads the document, so several processes can share the files
as long as only one of them writes. Writes replace the file atomically
(temp file + rename). File I/O runs in a worker thread; within the process
every manager of the same file shares one asyncio lock.

Role references inside a stored role or policy are saved by value, so
roles shared between documents are separate objects after loading.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
import threading
import weakref
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from warden.condition import ConditionRegistry
from warden.errors import DuplicateIdError, NotFoundError, StorageError
from warden.policy.model import Policy
from warden.request import Request
from warden.role import Role
from warden.storage.ports import PolicyManager, RoleManager, limit_indices
from warden.strmatch import match_wildcard

logger = logging.getLogger(__name__)


class FileStorage:
    """
    Shared location of the policy and role documents.

    Args:
        name: File name stem (default: "warden")
        path: Directory holding the files (created when missing)
    """

    def __init__(self, name: str = "warden", path: str | os.PathLike[str] = "."):
        self.name = name
        self.path = Path(path)

    @property
    def policy_path(self) -> Path:
        return self.path / f"{self.name}.policy"

    @property
    def role_path(self) -> Path:
        return self.path / f"{self.name}.roles"

    def policy_manager(
        self,
        registry: ConditionRegistry | None = None,
        strict_conditions: bool = False,
    ) -> FilePolicyManager:
        return FilePolicyManager(self, registry, strict_conditions)

    def role_manager(self) -> FileRoleManager:
        return FileRoleManager(self)


def _read_document(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8") or "{}")
    except ValueError as e:
        raise StorageError(f"corrupt storage file {path}: {e}") from e
    if not isinstance(data, dict):
        raise StorageError(f"corrupt storage file {path}: expected an object")
    return data


def _write_document(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, separators=(",", ":"), sort_keys=True)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def _ensure_document(path: Path) -> None:
    """Create path as an empty object unless it already exists."""
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(path, "x", encoding="utf-8") as f:
            f.write("{}")
    except FileExistsError:
        return
    logger.info(f"Created storage file {path}")


# One lock per (event loop, resolved path): every manager touching a file
# in this process serializes on the same lock.
_document_locks: weakref.WeakKeyDictionary[
    asyncio.AbstractEventLoop, dict[Path, asyncio.Lock]
] = weakref.WeakKeyDictionary()
_document_locks_guard = threading.Lock()


def _document_lock(path: Path) -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    with _document_locks_guard:
        locks = _document_locks.setdefault(loop, {})
        lock = locks.get(path)
        if lock is None:
            lock = locks[path] = asyncio.Lock()
        return lock


class _FileDocument:
    """Lock-guarded, thread-offloaded access to one JSON document."""

    def __init__(self, path: Path):
        self._path = path.resolve()
        _ensure_document(self._path)

    async def load(self) -> dict[str, Any]:
        async with _document_lock(self._path):
            return await asyncio.to_thread(_read_document, self._path)

    async def modify(self, change) -> None:
        """Load, apply change(document) and write back under one lock."""
        async with _document_lock(self._path):
            data = await asyncio.to_thread(_read_document, self._path)
            change(data)
            await asyncio.to_thread(_write_document, self._path, data)


class FilePolicyManager(PolicyManager):
    """
    Policy storage backed by <name>.policy.
    """

    def __init__(
        self,
        storage: FileStorage,
        registry: ConditionRegistry | None = None,
        strict_conditions: bool = False,
    ):
        self._storage = storage
        self._registry = registry
        self._strict = strict_conditions
        self._doc = _FileDocument(storage.policy_path)

    def _decode(self, data: dict[str, Any]) -> Policy:
        return Policy.from_dict(data, self._registry, self._strict)

    async def _load(self) -> dict[str, Policy]:
        raw = await self._doc.load()
        return {key: self._decode(value) for key, value in raw.items()}

    async def create(self, policy: Policy) -> None:
        def change(data: dict[str, Any]) -> None:
            if policy.id in data:
                raise DuplicateIdError(f"policy {policy.id} already registered")
            data[policy.id] = policy.to_dict()

        await self._doc.modify(change)
        logger.debug(f"Stored policy {policy.id} in {self._storage.policy_path}")

    async def update(self, policy: Policy) -> None:
        def change(data: dict[str, Any]) -> None:
            if policy.id not in data:
                raise NotFoundError(f"policy {policy.id} does not exist")
            data[policy.id] = policy.to_dict()

        await self._doc.modify(change)

    async def get(self, policy_id: str) -> Policy:
        raw = await self._doc.load()
        if policy_id not in raw:
            raise NotFoundError(f"policy {policy_id} does not exist")
        return self._decode(raw[policy_id])

    async def delete(self, policy_id: str) -> None:
        def change(data: dict[str, Any]) -> None:
            if data.pop(policy_id, None) is None:
                raise NotFoundError(f"policy {policy_id} does not exist")

        await self._doc.modify(change)

    async def all(self, limit: int = 100, offset: int = 0) -> list[Policy]:
        policies = await self._load()
        keys = sorted(policies)
        start, end = limit_indices(limit, offset, len(keys))
        return [policies[k] for k in keys[start:end]]

    async def _find_all(self) -> list[Policy]:
        policies = await self._load()
        return [policies[k] for k in sorted(policies)]

    async def find_by_request(self, request: Request) -> list[Policy]:
        return await self._find_all()

    async def find_by_role(self, role: str) -> list[Policy]:
        return await self._find_all()

    async def find_by_resource(self, resource: str) -> list[Policy]:
        return await self._find_all()

    async def find_by_scope(self, scope: str) -> list[Policy]:
        return await self._find_all()


class FileRoleManager(RoleManager):
    """
    Role storage backed by <name>.roles.
    """

    def __init__(self, storage: FileStorage):
        self._storage = storage
        self._doc = _FileDocument(storage.role_path)

    @staticmethod
    def _decode(data: dict[str, Any]) -> Role:
        try:
            return Role.model_validate(data)
        except ValidationError as e:
            raise StorageError(f"invalid role document: {e}") from e

    async def _load(self) -> dict[str, Role]:
        raw = await self._doc.load()
        return {key: self._decode(value) for key, value in raw.items()}

    async def create(self, role: Role) -> None:
        await self._write(role, overwrite=False)

    async def update(self, role: Role) -> None:
        await self._write(role, overwrite=True)

    async def _write(self, role: Role, overwrite: bool) -> None:
        def change(data: dict[str, Any]) -> None:
            exists = role.id in data
            if exists and not overwrite:
                raise DuplicateIdError(f"role {role.id} already registered")
            if not exists and overwrite:
                raise NotFoundError(f"role {role.id} does not exist")
            data[role.id] = role.model_dump(mode="json")

        await self._doc.modify(change)

    async def get(self, role_id: str) -> Role:
        raw = await self._doc.load()
        if role_id not in raw:
            raise NotFoundError(f"role {role_id} not found")
        return self._decode(raw[role_id])

    async def get_by_name(self, name: str) -> Role:
        roles = await self._load()
        for key in sorted(roles):
            if roles[key].name == name:
                return roles[key]
        raise NotFoundError(f"role name {name} not found")

    async def delete(self, role_id: str) -> None:
        def change(data: dict[str, Any]) -> None:
            if data.pop(role_id, None) is None:
                raise NotFoundError(f"role {role_id} not found")

        await self._doc.modify(change)

    async def all(self, limit: int = 100, offset: int = 0) -> list[Role]:
        roles = await self._load()
        keys = sorted(roles)
        start, end = limit_indices(limit, offset, len(keys))
        return [roles[k] for k in keys[start:end]]

    async def get_matching(self, pattern: str) -> list[Role]:
        roles = await self._load()
        return [roles[k] for k in sorted(roles) if match_wildcard(pattern, k)]
