import asyncio

import pytest

from conftest import OWNER, make_snippet

from snippetvault.application.services.snippet_cache import SnippetCache
from snippetvault.domain.errors import UnauthorizedError, UnavailableError


async def _seed(store, owner=OWNER, n=2):
    out = []
    for i in range(n):
        out.append(await store.insert(owner, {"title": f"t{i}", "code": "x", "language": "python", "tags": []}))
    return out


def test_snapshot_of_unknown_owner_is_empty_and_stale(cache):
    snap = cache.get_snapshot(OWNER)
    assert snap.snippets == ()
    assert snap.is_stale is True
    assert snap.is_loading is False
    assert snap.error is None
    assert cache.has_entry(OWNER)


@pytest.mark.asyncio
async def test_ensure_fresh_fetches_and_clears_staleness(store, cache):
    first, second = await _seed(store)
    task = cache.ensure_fresh(OWNER)
    assert task is not None
    assert cache.get_snapshot(OWNER).is_loading is True
    await task
    snap = cache.get_snapshot(OWNER)
    assert [s.id for s in snap.snippets] == [second.id, first.id]
    assert snap.is_stale is False and snap.is_loading is False
    assert cache.ensure_fresh(OWNER) is None


@pytest.mark.asyncio
async def test_concurrent_ensure_fresh_piggybacks(store, cache):
    await _seed(store)
    gate = store.hold()
    t1 = cache.ensure_fresh(OWNER)
    t2 = cache.ensure_fresh(OWNER)
    assert t1 is t2
    gate.set()
    await t1
    assert store.list_calls == 1


@pytest.mark.asyncio
async def test_invalidate_marks_stale_without_fetching(store, cache):
    await _seed(store)
    await cache.refresh(OWNER)
    calls = store.list_calls
    cache.invalidate(OWNER)
    assert cache.get_snapshot(OWNER).is_stale is True
    await asyncio.sleep(0)
    assert store.list_calls == calls


def test_invalidate_unknown_owner_does_not_create_entry(cache):
    cache.invalidate("ghost")
    assert not cache.has_entry("ghost")


@pytest.mark.asyncio
async def test_failed_fetch_keeps_previous_snapshot_and_staleness(store, cache):
    seeded = await _seed(store)
    await cache.refresh(OWNER)
    cache.invalidate(OWNER)
    store.fail_with = UnavailableError("down")
    with pytest.raises(UnavailableError):
        await cache.refresh(OWNER)
    snap = cache.get_snapshot(OWNER)
    assert {s.id for s in snap.snippets} == {s.id for s in seeded}
    assert snap.is_stale is True
    assert isinstance(snap.error, UnavailableError)

    store.fail_with = None
    snap = await cache.refresh(OWNER)
    assert snap.is_stale is False and snap.error is None


@pytest.mark.asyncio
async def test_untyped_store_error_is_surfaced_as_unavailable(store, cache):
    store.fail_with = ConnectionResetError("reset")
    with pytest.raises(UnavailableError):
        await cache.refresh(OWNER)
    assert isinstance(cache.get_snapshot(OWNER).error, UnavailableError)


@pytest.mark.asyncio
async def test_unauthorized_fetch(store, cache):
    store.close_session(OWNER)
    with pytest.raises(UnauthorizedError):
        await cache.refresh(OWNER)
    assert isinstance(cache.get_snapshot(OWNER).error, UnauthorizedError)


@pytest.mark.asyncio
async def test_unawaited_failed_fetch_does_not_leak(store, cache):
    store.fail_with = UnavailableError("down")
    task = cache.ensure_fresh(OWNER)
    await asyncio.wait([task])
    assert isinstance(task.exception(), UnavailableError)
    assert cache.get_snapshot(OWNER).is_loading is False


@pytest.mark.asyncio
async def test_evicted_owner_discards_in_flight_result(store, cache):
    await _seed(store)
    gate = store.hold()
    task = cache.ensure_fresh(OWNER)
    await asyncio.sleep(0)
    cache.evict(OWNER)
    gate.set()
    await task
    assert not cache.has_entry(OWNER)
    assert cache.get_snapshot(OWNER).snippets == ()


@pytest.mark.asyncio
async def test_invalidate_during_fetch_keeps_entry_stale(store, cache):
    await _seed(store, n=1)
    gate = store.hold()
    task = cache.ensure_fresh(OWNER)
    await asyncio.sleep(0)
    await store.insert(OWNER, {"title": "late", "code": "x", "language": "go"})
    cache.invalidate(OWNER)
    gate.set()
    await task
    assert cache.get_snapshot(OWNER).is_stale is True

    snap = await cache.refresh(OWNER)
    assert snap.is_stale is False
    assert snap.snippets[0].title == "late"


@pytest.mark.asyncio
async def test_refresh_retries_after_piggybacked_stale_fetch(store, cache):
    await _seed(store, n=1)
    gate = store.hold()
    cache.ensure_fresh(OWNER)
    await asyncio.sleep(0)
    await store.insert(OWNER, {"title": "new", "code": "x", "language": "go"})
    cache.invalidate(OWNER)
    refreshing = asyncio.ensure_future(cache.refresh(OWNER))
    await asyncio.sleep(0)
    gate.set()
    snap = await refreshing
    assert snap.is_stale is False
    assert snap.snippets[0].title == "new"
    assert store.list_calls == 2


@pytest.mark.asyncio
async def test_fetch_result_is_deduplicated_and_sorted():
    class _Store:
        async def list_by_owner(self, owner):
            return [
                make_snippet("old", minutes=1),
                make_snippet("new", minutes=5),
                make_snippet("old", minutes=1),
            ]

    cache = SnippetCache(_Store())
    snap = await cache.refresh(OWNER)
    assert [s.id for s in snap.snippets] == ["new", "old"]


@pytest.mark.asyncio
async def test_listeners_receive_events_and_errors_are_isolated(store, cache):
    seen = []

    def bad_listener(event):
        raise RuntimeError("boom")

    cache.subscribe(bad_listener)
    unsubscribe = cache.subscribe(lambda e: seen.append((e.owner, e.kind)))
    await cache.refresh(OWNER)
    cache.invalidate(OWNER)
    cache.evict(OWNER)
    assert seen == [
        (OWNER, "loading"),
        (OWNER, "fresh"),
        (OWNER, "invalidated"),
        (OWNER, "evicted"),
    ]
    unsubscribe()
    await cache.refresh(OWNER)
    assert len(seen) == 4


@pytest.mark.asyncio
async def test_clear_evicts_every_owner(store, cache):
    await cache.refresh(OWNER)
    cache.get_snapshot("someone")
    cache.clear()
    assert not cache.has_entry(OWNER)
    assert not cache.has_entry("someone")
