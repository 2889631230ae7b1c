# TTL caching policy manager

import asyncio

import pytest

from warden.policy import new_policy, policy_description, policy_name
from warden.request import new_request
from warden.storage import CachedPolicyManager, InMemoryPolicyManager


class CountingManager(InMemoryPolicyManager):
    def __init__(self):
        super().__init__()
        self.finds = 0
        self.resource_finds = []

    async def find_by_request(self, request):
        self.finds += 1
        return await super().find_by_request(request)

    async def find_by_resource(self, resource):
        self.resource_finds.append(resource)
        return await super().find_by_resource(resource)


class SlowManager(InMemoryPolicyManager):
    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def find_by_request(self, request):
        result = await super().find_by_request(request)
        self.started.set()
        await self.release.wait()
        return result


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def backing():
    return CountingManager()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cached(backing, clock):
    return CachedPolicyManager(backing, ttl_seconds=30, clock=clock)


async def test_reads_are_cached_until_ttl(cached, backing, clock):
    request = new_request("doc", "read", "viewer")
    await cached.create(new_policy(policy_name("p1")))

    await cached.find_by_request(request)
    await cached.find_by_request(request)
    assert backing.finds == 1

    clock.now = 31
    await cached.find_by_request(request)
    assert backing.finds == 2


async def test_writes_invalidate(cached, backing):
    request = new_request("doc", "read", "viewer")
    await cached.create(new_policy(policy_name("p1")))
    assert [p.id for p in await cached.find_by_request(request)] == ["p1"]

    await cached.create(new_policy(policy_name("p2")))
    assert [p.id for p in await cached.find_by_request(request)] == ["p1", "p2"]

    await cached.update(new_policy(policy_name("p1"), policy_description("new")))
    assert (await cached.get("p1")).description == "new"

    await cached.delete("p2")
    assert [p.id for p in await cached.all()] == ["p1"]
    assert backing.finds == 2


async def test_bypassing_writes_stay_stale_until_ttl(cached, backing, clock):
    await cached.create(new_policy(policy_name("p1")))
    assert len(await cached.all()) == 1

    await backing.create(new_policy(policy_name("p2")))
    assert len(await cached.all()) == 1

    clock.now = 60
    assert len(await cached.all()) == 2


async def test_returned_lists_are_copies(cached):
    await cached.create(new_policy(policy_name("p1")))
    first = await cached.all()
    first.clear()
    assert len(await cached.all()) == 1


def test_ttl_must_be_positive(backing):
    with pytest.raises(ValueError):
        CachedPolicyManager(backing, ttl_seconds=0)


def test_max_entries_must_be_positive(backing):
    with pytest.raises(ValueError):
        CachedPolicyManager(backing, ttl_seconds=1, max_entries=0)


async def test_read_in_flight_across_write_is_not_stored(clock):
    slow = SlowManager()
    cached = CachedPolicyManager(slow, ttl_seconds=30, clock=clock)
    request = new_request("doc", "read", "viewer")

    pending = asyncio.create_task(cached.find_by_request(request))
    await slow.started.wait()
    await cached.create(new_policy(policy_name("p1")))
    slow.release.set()

    # the in-flight caller still gets what it loaded
    assert await pending == []
    assert len(cached) == 0
    assert [p.id for p in await cached.find_by_request(request)] == ["p1"]


async def test_expired_entries_are_swept(cached, clock):
    for i in range(500):
        await cached.find_by_resource(f"/path/{i}")
    assert len(cached) == 500

    clock.now = 1000
    await cached.find_by_resource("/path/new")
    assert len(cached) == 1


async def test_oldest_entries_evicted_past_max_entries(backing, clock):
    cached = CachedPolicyManager(backing, ttl_seconds=30, clock=clock, max_entries=3)
    for resource in ["a", "b", "c", "d"]:
        await cached.find_by_resource(resource)
    assert len(cached) == 3

    backing.resource_finds.clear()
    await cached.find_by_resource("d")
    await cached.find_by_resource("a")
    assert backing.resource_finds == ["a"]
    assert len(cached) == 3
