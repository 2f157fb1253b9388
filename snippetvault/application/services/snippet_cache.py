"""
Per-owner snippet cache with invalidate-then-refetch coherence.

The cache holds the last successfully fetched collection for each owner and
is the only component that mutates a cache entry. Readers get a synchronous
``Snapshot``; writers mark entries stale and ask for a refetch.

- At most one fetch is in flight per owner; concurrent ``ensure_fresh`` calls
  share it.
- A failed fetch leaves the previous collection in place and the entry stale,
  so a later call retries.
- A fetch that completes after its entry was evicted (sign-out) is discarded.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, NoReturn, Optional, Tuple

from snippetvault.domain.entities.snippet import Snippet
from snippetvault.domain.errors import SnippetVaultError, UnavailableError
from snippetvault.domain.interfaces.snippet_store_interface import ISnippetStore
from snippetvault.metrics import fetch_timer, record_fetch
from snippetvault.observability import bind_owner, emit_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """Last-known state for one owner, safe to hand to any reader."""

    snippets: Tuple[Snippet, ...] = ()
    is_stale: bool = True
    is_loading: bool = False
    error: Optional[SnippetVaultError] = None

    def get(self, snippet_id: str) -> Optional[Snippet]:
        for s in self.snippets:
            if s.id == snippet_id:
                return s
        return None


@dataclass(frozen=True)
class CacheEvent:
    owner: str
    kind: str  # loading | fresh | failed | invalidated | evicted
    snapshot: Snapshot


CacheListener = Callable[[CacheEvent], None]


@dataclass
class _CacheEntry:
    snippets: Tuple[Snippet, ...] = ()
    is_stale: bool = True
    in_flight: Optional["asyncio.Task[Snapshot]"] = None
    error: Optional[SnippetVaultError] = None
    # bumped on every invalidate; a fetch that started under an older value
    # installs its data but cannot clear staleness
    version: int = 0

    def snapshot(self) -> Snapshot:
        return Snapshot(
            snippets=self.snippets,
            is_stale=self.is_stale,
            is_loading=self.in_flight is not None,
            error=self.error,
        )


def _coherent(snippets: List[Snippet]) -> Tuple[Snippet, ...]:
    """Unique by id, ``updated_at`` descending (stable for ties)."""
    seen = set()
    unique: List[Snippet] = []
    for s in snippets:
        if s.id in seen:
            continue
        seen.add(s.id)
        unique.append(s)
    if len(unique) != len(snippets):
        logger.warning("store returned %d duplicate snippet ids", len(snippets) - len(unique))
    unique.sort(key=lambda s: s.updated_at, reverse=True)
    return tuple(unique)


class SnippetCache:
    """Cache & invalidation layer over an ``ISnippetStore``."""

    def __init__(self, store: ISnippetStore, *, refresh_max_attempts: int = 2) -> None:
        self._store = store
        self._entries: Dict[str, _CacheEntry] = {}
        self._listeners: List[CacheListener] = []
        self._refresh_max_attempts = max(1, int(refresh_max_attempts))

    # ---------- Observer ----------
    def subscribe(self, listener: CacheListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, owner: str, kind: str, snapshot: Snapshot) -> None:
        event = CacheEvent(owner=owner, kind=kind, snapshot=snapshot)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("cache listener failed on %s", kind)

    # ---------- Reads ----------
    def _entry(self, owner: str) -> _CacheEntry:
        entry = self._entries.get(owner)
        if entry is None:
            entry = _CacheEntry()
            self._entries[owner] = entry
        return entry

    def get_snapshot(self, owner: str) -> Snapshot:
        """Synchronous read of the last-known state; never blocks."""
        return self._entry(owner).snapshot()

    def has_entry(self, owner: str) -> bool:
        return owner in self._entries

    # ---------- Invalidation ----------
    def invalidate(self, owner: str) -> None:
        """Mark the owner's entry stale. Does not start a fetch.

        Owners without an entry (never read, or signed out) are ignored so a
        late mutation result cannot resurrect a torn-down entry.
        """
        entry = self._entries.get(owner)
        if entry is None:
            return
        entry.is_stale = True
        entry.version += 1
        emit_event("snippet_cache_invalidated", owner=owner, version=entry.version)
        self._notify(owner, "invalidated", entry.snapshot())

    def ensure_fresh(self, owner: str) -> Optional["asyncio.Task[Snapshot]"]:
        """Start a fetch if the entry is stale or absent and none is running.

        Returns the in-flight task (new or shared), or None when the entry is
        already fresh. Must be called from within a running event loop.
        """
        bind_owner(owner)
        entry = self._entry(owner)
        if entry.in_flight is not None:
            return entry.in_flight
        if not entry.is_stale:
            return None
        task = asyncio.get_running_loop().create_task(self._fetch(owner, entry, entry.version))
        entry.in_flight = task
        task.add_done_callback(_consume_task_error)
        self._notify(owner, "loading", entry.snapshot())
        return task

    async def refresh(self, owner: str) -> Snapshot:
        """Fetch until the entry is fresh, then return the snapshot.

        A shared fetch that started before the latest invalidation leaves the
        entry stale; in that case another round is run, up to
        ``refresh_max_attempts`` rounds. Fetch failures propagate.
        """
        for _ in range(self._refresh_max_attempts):
            task = self.ensure_fresh(owner)
            if task is None:
                break
            await task
            if not self.has_entry(owner) or not self._entries[owner].is_stale:
                break
        return self.get_snapshot(owner)

    # ---------- Teardown ----------
    def evict(self, owner: str) -> None:
        """Tear the owner's entry down (sign-out). In-flight results are discarded."""
        entry = self._entries.pop(owner, None)
        if entry is None:
            return
        emit_event("snippet_cache_evicted", owner=owner, had_fetch=entry.in_flight is not None)
        self._notify(owner, "evicted", Snapshot())

    def clear(self) -> None:
        for owner in list(self._entries):
            self.evict(owner)

    # ---------- Fetch ----------
    def _is_live(self, owner: str, entry: _CacheEntry) -> bool:
        return self._entries.get(owner) is entry

    async def _fetch(self, owner: str, entry: _CacheEntry, started_version: int) -> Snapshot:
        try:
            with fetch_timer():
                rows = await self._store.list_by_owner(owner)
        except asyncio.CancelledError:
            if self._is_live(owner, entry):
                entry.in_flight = None
            raise
        except SnippetVaultError as e:
            self._fail(owner, entry, e)
        except Exception as e:
            # the adapter should have translated this; treat as transport failure
            logger.exception("snippet store raised an untyped error")
            wrapped = UnavailableError(str(e) or type(e).__name__, owner=owner)
            wrapped.__cause__ = e
            self._fail(owner, entry, wrapped)

        if not self._is_live(owner, entry):
            record_fetch("discarded")
            emit_event("snippet_cache_fetch_discarded", owner=owner)
            return Snapshot()

        entry.snippets = _coherent(list(rows))
        entry.error = None
        entry.in_flight = None
        entry.is_stale = entry.version != started_version
        record_fetch("success")
        emit_event(
            "snippet_cache_fetched",
            owner=owner,
            count=len(entry.snippets),
            still_stale=entry.is_stale,
        )
        snap = entry.snapshot()
        self._notify(owner, "fresh", snap)
        return snap

    def _fail(self, owner: str, entry: _CacheEntry, error: SnippetVaultError) -> NoReturn:
        if not self._is_live(owner, entry):
            record_fetch("discarded")
            emit_event("snippet_cache_fetch_discarded", owner=owner, error_code=error.code)
            raise error
        entry.in_flight = None
        entry.error = error
        record_fetch(error.code)
        emit_event(
            "snippet_cache_fetch_failed",
            severity="warning",
            owner=owner,
            error_code=error.code,
            error=str(error),
        )
        self._notify(owner, "failed", entry.snapshot())
        raise error


def _consume_task_error(task: "asyncio.Task[Snapshot]") -> None:
    # Failures are surfaced through Snapshot.error and listeners; retrieving
    # the exception here keeps unawaited tasks from warning at shutdown.
    if not task.cancelled():
        task.exception()
