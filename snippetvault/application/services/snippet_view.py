from __future__ import annotations

from typing import Callable, List, Optional, Tuple

from snippetvault.application.services.snippet_cache import CacheEvent, SnippetCache, Snapshot
from snippetvault.domain.entities.query import QueryPredicate
from snippetvault.domain.entities.snippet import Snippet
from snippetvault.domain.services.query_engine import SnippetStats, filter_snippets, summarize


class SnippetView:
    """Memoized filtered view of one owner's snapshot.

    The view is recomputed only when the predicate or the cached collection
    changes, so the presentation layer can read it on every keystroke.
    ``on_change`` is called whenever the owner's snapshot changes.
    """

    def __init__(
        self,
        cache: SnippetCache,
        owner: str,
        predicate: Optional[QueryPredicate] = None,
        on_change: Optional[Callable[["SnippetView"], None]] = None,
    ) -> None:
        self._cache = cache
        self._owner = owner
        self._predicate = predicate or QueryPredicate()
        self._on_change = on_change
        self._memo_source: Optional[Tuple[Snippet, ...]] = None
        self._memo_predicate: Optional[QueryPredicate] = None
        self._memo: List[Snippet] = []
        self._unsubscribe: Optional[Callable[[], None]] = cache.subscribe(self._handle_event)

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def predicate(self) -> QueryPredicate:
        return self._predicate

    def set_predicate(self, predicate: QueryPredicate) -> None:
        self._predicate = predicate

    def clear_filters(self) -> None:
        self._predicate = self._predicate.cleared()

    @property
    def snapshot(self) -> Snapshot:
        return self._cache.get_snapshot(self._owner)

    @property
    def snippets(self) -> List[Snippet]:
        snap = self.snapshot
        if snap.snippets is not self._memo_source or self._predicate != self._memo_predicate:
            self._memo = filter_snippets(snap.snippets, self._predicate)
            self._memo_source = snap.snippets
            self._memo_predicate = self._predicate
        return list(self._memo)

    @property
    def stats(self) -> SnippetStats:
        return summarize(self.snapshot.snippets)

    def close(self) -> None:
        """Detach from the cache; later snapshot changes are ignored."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._on_change = None

    def _handle_event(self, event: CacheEvent) -> None:
        if event.owner != self._owner or self._on_change is None:
            return
        self._on_change(self)
