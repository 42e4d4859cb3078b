import asyncio

import pytest

from nanogpt_catalog.cache import CatalogCache
from nanogpt_catalog.errors import CatalogCancelledError, NetworkError
from nanogpt_catalog.models import CatalogResolution, ModelCategory


def _resolution(category=ModelCategory.ALL):
    return CatalogResolution(descriptors=(), origin=category, preferred=category)


class _Loader:
    """Counts invocations; each load waits on ``release`` when given one."""

    def __init__(self, result=None, error=None, release=None):
        self.calls = 0
        self.cancelled = False
        self._result = result or _resolution()
        self._error = error
        self._release = release

    async def __call__(self):
        self.calls += 1
        try:
            if self._release is not None:
                await self._release.wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self._error is not None:
            raise self._error
        return self._result


def test_key_hides_credential():
    key = CatalogCache.make_key("premium", "sk-secret")
    assert key.startswith("catalog:premium:")
    assert "sk-secret" not in key
    assert key != CatalogCache.make_key("premium", "sk-other")


@pytest.mark.asyncio
async def test_second_call_is_a_hit():
    cache = CatalogCache(ttl=60)
    loader = _Loader()

    first = await cache.get_or_load("all", "k", loader)
    second = await cache.get_or_load("all", "k", loader)

    assert first is second
    assert loader.calls == 1
    assert cache.stats["hits"] == 1
    assert cache.stats["misses"] == 1


@pytest.mark.asyncio
async def test_force_refresh_reloads():
    cache = CatalogCache(ttl=60)
    loader = _Loader()
    await cache.get_or_load("all", "k", loader)
    await cache.get_or_load("all", "k", loader, force_refresh=True)
    assert loader.calls == 2


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_load():
    cache = CatalogCache(ttl=60)
    release = asyncio.Event()
    loader = _Loader(release=release)

    tasks = [asyncio.ensure_future(cache.get_or_load("all", "k", loader)) for _ in range(5)]
    await asyncio.sleep(0)
    assert cache.in_flight == 1
    release.set()
    results = await asyncio.gather(*tasks)

    assert loader.calls == 1
    assert all(r is results[0] for r in results)
    assert cache.stats["shared"] == 4
    assert cache.in_flight == 0


@pytest.mark.asyncio
async def test_failures_are_not_cached():
    cache = CatalogCache(ttl=60)
    failing = _Loader(error=NetworkError("down"))

    with pytest.raises(NetworkError):
        await cache.get_or_load("all", "k", failing)
    assert cache.get("all", "k") is None

    ok = _Loader()
    await cache.get_or_load("all", "k", ok)
    assert ok.calls == 1


@pytest.mark.asyncio
async def test_one_waiter_cancelling_keeps_shared_load():
    cache = CatalogCache(ttl=60)
    release = asyncio.Event()
    loader = _Loader(release=release)
    cancel = asyncio.Event()

    quitter = asyncio.ensure_future(cache.get_or_load("all", "k", loader, cancel))
    stayer = asyncio.ensure_future(cache.get_or_load("all", "k", loader))
    await asyncio.sleep(0)
    cancel.set()
    with pytest.raises(CatalogCancelledError):
        await quitter

    release.set()
    assert (await stayer).origin is ModelCategory.ALL
    assert loader.cancelled is False
    assert loader.calls == 1


@pytest.mark.asyncio
async def test_last_waiter_cancelling_stops_load():
    cache = CatalogCache(ttl=60)
    loader = _Loader(release=asyncio.Event())
    cancel = asyncio.Event()

    waiter = asyncio.ensure_future(cache.get_or_load("all", "k", loader, cancel))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    cancel.set()
    with pytest.raises(CatalogCancelledError):
        await waiter
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    assert loader.cancelled is True
    assert cache.in_flight == 0
    assert cache.get("all", "k") is None


@pytest.mark.asyncio
async def test_pre_cancelled_never_loads():
    cache = CatalogCache(ttl=60)
    loader = _Loader()
    cancel = asyncio.Event()
    cancel.set()
    with pytest.raises(CatalogCancelledError):
        await cache.get_or_load("all", "k", loader, cancel)
    assert loader.calls == 0


@pytest.mark.asyncio
async def test_invalidate_and_clear():
    cache = CatalogCache(ttl=60)
    await cache.get_or_load("all", "k", _Loader())
    await cache.get_or_load("premium", "k", _Loader(result=_resolution(ModelCategory.PREMIUM)))

    cache.invalidate("all", "k")
    assert cache.get("all", "k") is None
    assert cache.get("premium", "k") is not None

    cache.clear()
    assert cache.stats["entries"] == 0


@pytest.mark.asyncio
async def test_fallback_resolution_is_not_cached():
    cache = CatalogCache(ttl=60)
    fallback = CatalogResolution(descriptors=(), origin=ModelCategory.ALL, preferred=ModelCategory.PREMIUM)
    loader = _Loader(result=fallback)

    await cache.get_or_load("premium", "k", loader)
    await cache.get_or_load("premium", "k", loader)

    assert loader.calls == 2
    assert cache.get("premium", "k") is None
    assert cache.in_flight == 0
