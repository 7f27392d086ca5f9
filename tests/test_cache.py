import pytest

from tele_weather_alerts.cache import MemoryCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.mark.asyncio
async def test_get_returns_value_until_ttl(clock) -> None:
    cache = MemoryCache(clock=clock)
    await cache.set("k", "v", 300)

    clock.now += 299
    assert await cache.get("k") == "v"

    clock.now += 1
    assert await cache.get("k") is None
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_set_overwrites(clock) -> None:
    cache = MemoryCache(clock=clock)
    await cache.set("k", "old", 10)
    await cache.set("k", "new", 10)
    assert await cache.get("k") == "new"


@pytest.mark.asyncio
async def test_evicts_oldest_beyond_capacity(clock) -> None:
    cache = MemoryCache(max_entries=2, clock=clock)
    await cache.set("a", "1", 60)
    await cache.set("b", "2", 60)
    await cache.set("c", "3", 60)

    assert await cache.get("a") is None
    assert await cache.get("b") == "2"
    assert await cache.get("c") == "3"


@pytest.mark.asyncio
async def test_delete_counts_removed(clock) -> None:
    cache = MemoryCache(clock=clock)
    await cache.set("a", "1", 60)
    assert await cache.delete("a", "missing") == 1
    assert await cache.get("a") is None
