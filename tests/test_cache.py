from datetime import timedelta

import pytest
from sqlalchemy import select

from drc.models import CacheEntry
from drc.services.cache import CacheStore, cache_key

TTL = timedelta(minutes=60)


async def _keys(session) -> set[str]:
    result = await session.execute(select(CacheEntry.key))
    return set(result.scalars())


def test_cache_key_keeps_raw_parts():
    assert cache_key("resources", "abc", "40.0", "-73.9") == "resources:abc:40.0:-73.9"
    assert cache_key("resources", "abc", "40.00", "-73.9") != cache_key(
        "resources", "abc", "40.0", "-73.9"
    )


async def test_get_fresh_misses_on_empty_table(cache):
    assert await cache.get_fresh("geocode:Nowhere") is None


async def test_hit_within_ttl_and_miss_after_expiry(cache, clock):
    await cache.upsert("geocode:Manhattan", {"lat": "40.78"}, TTL)

    clock.advance(minutes=59)
    assert await cache.get_fresh("geocode:Manhattan") == {"lat": "40.78"}

    clock.advance(minutes=1)
    assert await cache.get_fresh("geocode:Manhattan") is None
    # The row itself survives until it is overwritten or swept.
    stale = await cache.get("geocode:Manhattan")
    assert stale is not None
    assert stale.value == {"lat": "40.78"}
    assert not stale.is_fresh(clock())


async def test_upsert_overwrites_value_and_expiry(cache, clock, session):
    await cache.upsert("official_updates:abc", {"updates": []}, TTL)
    clock.advance(minutes=30)
    await cache.upsert("official_updates:abc", {"updates": ["new"]}, TTL)

    assert await cache.get_fresh("official_updates:abc") == {"updates": ["new"]}
    cached = await cache.get("official_updates:abc")
    assert cached.expires_at.replace(tzinfo=clock().tzinfo) == clock() + TTL
    assert await _keys(session) == {"official_updates:abc"}


async def test_delete_by_prefix_removes_only_matching_keys(cache, session):
    keys = [
        "social_media:abc:flood",
        "social_media:abc:fire",
        "social_media:abcd:flood",
        "Social_media:abc:flood",
        "socialXmedia:abc:flood",
        "official_updates:abc",
    ]
    for key in keys:
        await cache.upsert(key, {"k": key}, TTL)

    deleted = await cache.delete_by_prefix("social_media:abc:")

    assert deleted == 2
    assert await _keys(session) == {
        "social_media:abcd:flood",
        "Social_media:abc:flood",
        "socialXmedia:abc:flood",
        "official_updates:abc",
    }


async def test_delete_by_prefix_refuses_empty_prefix(cache):
    with pytest.raises(ValueError):
        await cache.delete_by_prefix("")


async def test_sweep_drops_rows_older_than_retention(cache, clock, session):
    await cache.upsert("resources:old:1:1", {"resources": []}, TTL)
    clock.advance(days=8)
    await cache.upsert("resources:new:1:1", {"resources": []}, TTL)

    assert await cache.sweep(timedelta(days=7)) == 1
    assert await _keys(session) == {"resources:new:1:1"}


async def test_stores_share_one_table(session_maker, clock):
    async with session_maker() as first, session_maker() as second:
        await CacheStore(first, clock=clock).upsert("geocode:Queens", {"lat": "1"}, TTL)
        assert await CacheStore(second, clock=clock).get_fresh("geocode:Queens") == {"lat": "1"}


async def test_delete_removes_exact_key_only(cache, session):
    await cache.upsert("official_updates:abc", {"updates": []}, TTL)
    await cache.upsert("official_updates:abcd", {"updates": []}, TTL)

    assert await cache.delete("official_updates:abc") == 1
    assert await cache.delete("official_updates:abc") == 0
    assert await _keys(session) == {"official_updates:abcd"}
