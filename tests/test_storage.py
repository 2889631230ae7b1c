# Manager contract shared by every storage backend

import pytest

from warden.errors import DuplicateIdError, NotFoundError, UnsupportedOperationError
from warden.policy import (
    new_policy,
    policy_allow,
    policy_description,
    policy_name,
    with_condition,
    with_role,
)
from warden.request import new_request
from warden.role import Role, new_role
from warden.storage import (
    RoleManager,
    StorageBackend,
    StorageSettings,
    create_storage,
    limit_indices,
)


@pytest.fixture(params=["memory", "file", "sqlite"])
async def bundle(request, tmp_path):
    backend = StorageBackend(request.param)
    settings = StorageSettings(backend=backend, storage_path=str(tmp_path))
    if backend == StorageBackend.SQLITE:
        settings.database_url = f"sqlite+aiosqlite:///{tmp_path / 'warden.db'}"

    storage = await create_storage(settings)
    yield storage
    await storage.close()


def _policy(policy_id: str, description: str = ""):
    return new_policy(
        policy_name(policy_id),
        policy_description(description),
        with_role(Role(id="viewer")),
        policy_allow(),
    )


@pytest.mark.parametrize("limit, offset, length, expected", [
    (100, 0, 3, (0, 3)),
    (2, 1, 5, (1, 3)),
    (10, 10, 5, (5, 5)),
    (-1, -4, 5, (0, 0)),
    (3, 4, 5, (4, 5)),
])
def test_limit_indices(limit, offset, length, expected):
    assert limit_indices(limit, offset, length) == expected


async def test_policy_crud(bundle):
    policies = bundle.policies
    await policies.create(_policy("p1", "first"))

    stored = await policies.get("p1")
    assert stored.id == "p1"
    assert stored.description == "first"

    await policies.update(_policy("p1", "changed"))
    assert (await policies.get("p1")).description == "changed"

    await policies.delete("p1")
    with pytest.raises(NotFoundError):
        await policies.get("p1")


async def test_policy_duplicate_and_missing(bundle):
    policies = bundle.policies
    await policies.create(_policy("p1"))

    with pytest.raises(DuplicateIdError):
        await policies.create(_policy("p1"))
    with pytest.raises(NotFoundError):
        await policies.update(_policy("ghost"))
    with pytest.raises(NotFoundError):
        await policies.delete("ghost")


async def test_policy_listing_is_ordered_and_clamped(bundle):
    for policy_id in ["c", "a", "d", "b"]:
        await bundle.policies.create(_policy(policy_id))

    assert [p.id for p in await bundle.policies.all()] == ["a", "b", "c", "d"]
    assert [p.id for p in await bundle.policies.all(limit=2, offset=1)] == ["b", "c"]
    assert await bundle.policies.all(limit=5, offset=10) == []

    candidates = await bundle.policies.find_by_request(new_request("doc", "read", "viewer"))
    assert [p.id for p in candidates] == ["a", "b", "c", "d"]
    assert len(await bundle.policies.find_by_role("viewer")) == 4
    assert len(await bundle.policies.find_by_resource("doc")) == 4
    assert len(await bundle.policies.find_by_scope("")) == 4


async def test_stored_policy_keeps_conditions_and_roles(bundle):
    policy = new_policy(
        policy_name("cond"),
        with_role(new_role("admin", Role(id="editor"))),
        with_condition(name="mfa", type="bool", options={"value": True}),
        policy_allow(),
    )
    await bundle.policies.create(policy)

    stored = await bundle.policies.get("cond")
    assert stored.to_json() == policy.to_json()
    assert stored.roles[0].effective_ids() == ["admin", "editor"]


async def test_role_crud(bundle):
    roles = bundle.roles
    await roles.create(new_role("admin", Role(id="editor"), name="Administrator"))
    await roles.create(Role(id="viewer", name="Viewer"))

    assert (await roles.get("admin")).effective_ids() == ["admin", "editor"]
    assert (await roles.get_by_name("Viewer")).id == "viewer"
    assert [r.id for r in await roles.all()] == ["admin", "viewer"]

    with pytest.raises(DuplicateIdError):
        await roles.create(Role(id="admin"))

    await roles.update(Role(id="viewer", name="Reader"))
    assert (await roles.get("viewer")).name == "Reader"

    await roles.delete("viewer")
    with pytest.raises(NotFoundError):
        await roles.get("viewer")
    with pytest.raises(NotFoundError):
        await roles.get_by_name("Nobody")
    with pytest.raises(NotFoundError):
        await roles.update(Role(id="ghost"))


async def test_role_get_matching(bundle):
    for role_id in ["team.a", "team.b", "other"]:
        await bundle.roles.create(Role(id=role_id))

    matched = await bundle.roles.get_matching("team.*")
    assert [r.id for r in matched] == ["team.a", "team.b"]


async def test_get_matching_is_optional():
    class MinimalRoleManager(RoleManager):
        async def create(self, role): ...
        async def update(self, role): ...
        async def get(self, role_id): ...
        async def get_by_name(self, name): ...
        async def delete(self, role_id): ...
        async def all(self, limit=100, offset=0): ...

    with pytest.raises(UnsupportedOperationError):
        await MinimalRoleManager().get_matching("*")
