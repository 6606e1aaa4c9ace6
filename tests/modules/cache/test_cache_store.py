# tests/modules/cache/test_cache_store.py
import pytest
import json
from unittest.mock import patch

from wabridge.modules.cache.store import TAG_TTL_GRACE, TagCacheStore, cache_key, cached, tag_key

pytestmark = pytest.mark.asyncio

@pytest.fixture
def store(redis_client):
    return TagCacheStore(redis_client)

async def test_set_writes_envelope_and_tag_sets(store, redis_client):
    await store.set("cache:props:1", {"id": 1}, ttl=600, tags=["properties", "user-1"])

    envelope = json.loads(await redis_client.get("cache:props:1"))
    assert envelope["data"] == {"id": 1}
    assert envelope["tags"] == ["properties", "user-1"]
    assert isinstance(envelope["cachedAt"], int)
    assert await redis_client.smembers(tag_key("properties")) == {"cache:props:1"}
    assert 0 < await redis_client.ttl("cache:props:1") <= 600
    assert 600 < await redis_client.ttl(tag_key("user-1")) <= 600 + TAG_TTL_GRACE

async def test_get_returns_data_or_none(store, redis_client):
    await store.set("k", [1, 2, 3])
    assert await store.get("k") == [1, 2, 3]
    assert await store.get("missing") is None

    await redis_client.set("broken", "not json")
    assert await store.get("broken") is None

async def test_revalidate_tag_deletes_entries_and_tag(store, redis_client):
    await store.set("a", 1, tags=["t1"])
    await store.set("b", 2, tags=["t1", "t2"])
    await store.set("c", 3, tags=["t2"])

    assert await store.revalidate_tag("t1") == 2
    assert await redis_client.exists("a", "b") == 0
    assert await redis_client.exists(tag_key("t1")) == 0
    assert await store.get("c") == 3

async def test_revalidate_unused_tag_changes_nothing(store, redis_client):
    await store.set("a", 1, tags=["t1"])
    before = sorted(await redis_client.keys("*"))

    assert await store.revalidate_tag("never-used") == 0
    assert sorted(await redis_client.keys("*")) == before

async def test_write_during_revalidation_stays_indexed(store, redis_client):
    await store.set("cache:a", 1, tags=["t"])
    real_smembers = redis_client.smembers

    async def smembers_then_write(key):
        members = await real_smembers(key)
        await store.set("cache:b", 2, tags=["t"])
        return members

    with patch.object(redis_client, "smembers", side_effect=smembers_then_write):
        assert await store.revalidate_tag("t") == 1

    assert await redis_client.exists("cache:a") == 0
    assert await store.get("cache:b") == 2
    assert await redis_client.smembers(tag_key("t")) == {"cache:b"}
    assert await store.get_all_tags() == ["t"]

    assert await store.revalidate_tag("t") == 1
    assert await redis_client.exists("cache:b") == 0

async def test_tag_stats_and_listing(store):
    await store.set("b", 1, tags=["t1"])
    await store.set("a", 2, tags=["t1", "t2"])

    stats = await store.get_tag_stats("t1")
    assert stats.count == 2
    assert stats.cache_keys == ["a", "b"]
    assert sorted(await store.get_all_tags()) == ["t1", "t2"]

async def test_cache_key_is_stable_and_prefixed():
    key = cache_key("fetch_properties", ["u1", 2])
    assert key == cache_key("fetch_properties", ["u1", 2])
    assert key != cache_key("fetch_properties", ["u1", 3])
    prefix, name, digest = key.split(":")
    assert (prefix, name, len(digest)) == ("cache", "fetch_properties", 16)
    assert cache_key("f", [], prefix="v2").startswith("v2:f:")

async def test_cached_decorator_hits_after_first_call(store):
    calls = []

    @cached(store, "load_user", ttl=60, tags=["users"])
    async def load_user(uid):
        calls.append(uid)
        return {"uid": uid}

    assert await load_user("u1") == {"uid": "u1"}
    assert await load_user("u1") == {"uid": "u1"}
    assert calls == ["u1"]

    assert await store.revalidate_tag("users") == 1
    await load_user("u1")
    assert calls == ["u1", "u1"]
