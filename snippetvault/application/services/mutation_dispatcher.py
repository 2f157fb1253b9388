from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional, TypeVar

from snippetvault.application.dto.snippet_dtos import CreateSnippetDTO, UpdateSnippetDTO
from snippetvault.application.services.snippet_cache import SnippetCache
from snippetvault.domain.entities.snippet import Snippet
from snippetvault.domain.errors import NotFoundError, SnippetVaultError
from snippetvault.domain.interfaces.snippet_store_interface import ISnippetStore
from snippetvault.domain.languages import Language
from snippetvault.domain.services import normalizer
from snippetvault.metrics import record_mutation
from snippetvault.observability import bind_owner, emit_event

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MutationState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    CACHE_INVALIDATED = "cache_invalidated"
    REFETCHING = "refetching"
    FRESH = "fresh"
    FAILED = "failed"


@dataclass(frozen=True)
class MutationEvent:
    owner: str
    intent: str
    state: MutationState
    snippet_id: Optional[str] = None
    error: Optional[SnippetVaultError] = None


MutationListener = Callable[[MutationEvent], None]


class MutationDispatcher:
    """Turn user intents into store calls followed by cache invalidation.

    Thin orchestration over the store and the cache. Each intent validates
    locally, makes one store call, then invalidates and refetches the owner's
    cache. Failures are raised as ``SnippetVaultError`` subclasses; a failed
    store call never touches the cache, except ``NotFoundError`` which also
    invalidates it to reconcile with the server.
    """

    def __init__(
        self,
        store: ISnippetStore,
        cache: SnippetCache,
        *,
        default_language: str = Language.JAVASCRIPT.value,
        max_code_size: Optional[int] = None,
        delete_not_found_is_success: bool = True,
    ) -> None:
        self._store = store
        self._cache = cache
        self._default_language = default_language
        self._max_code_size = max_code_size
        self._delete_not_found_is_success = delete_not_found_is_success
        self._listeners: List[MutationListener] = []

    def subscribe(self, listener: MutationListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _transition(
        self,
        owner: str,
        intent: str,
        state: MutationState,
        snippet_id: Optional[str] = None,
        error: Optional[SnippetVaultError] = None,
    ) -> None:
        event = MutationEvent(owner=owner, intent=intent, state=state, snippet_id=snippet_id, error=error)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("mutation listener failed on %s/%s", intent, state.value)

    # ---------- Intents ----------
    async def create(self, owner: str, draft: CreateSnippetDTO) -> Snippet:
        draft.validate(max_code_size=self._max_code_size)
        fields = draft.to_fields(default_language=self._default_language)
        return await self._run(owner, "create", None, lambda: self._store.insert(owner, fields))

    async def update(self, owner: str, snippet_id: str, patch: UpdateSnippetDTO) -> Snippet:
        patch.validate(max_code_size=self._max_code_size)
        fields = patch.to_fields(default_language=self._default_language)
        return await self._run(
            owner, "update", snippet_id, lambda: self._store.update_by_id(owner, snippet_id, fields)
        )

    async def toggle_favorite(self, owner: str, snippet_id: str, next_value: bool) -> Snippet:
        fields = {"is_favorite": bool(next_value)}
        return await self._run(
            owner, "toggle_favorite", snippet_id, lambda: self._store.update_by_id(owner, snippet_id, fields)
        )

    async def remove(self, owner: str, snippet_id: str) -> None:
        await self._run(owner, "remove", snippet_id, lambda: self._delete(owner, snippet_id))

    async def add_tag(self, owner: str, snippet_id: str, raw_tag: str) -> Snippet:
        tag = normalizer.normalize_tag(raw_tag)
        current = await self._cached(owner, snippet_id)
        tags = normalizer.normalize_tag_set(current.tags, tag)
        if tags is current.tags:
            return current
        return await self.update(owner, snippet_id, UpdateSnippetDTO(tags=tags))

    async def remove_tag(self, owner: str, snippet_id: str, raw_tag: str) -> Snippet:
        tag = normalizer.normalize_tag(raw_tag)
        current = await self._cached(owner, snippet_id)
        tags = normalizer.remove_tag(current.tags, tag)
        if tags is current.tags:
            return current
        return await self.update(owner, snippet_id, UpdateSnippetDTO(tags=tags))

    # ---------- Helpers ----------
    async def _delete(self, owner: str, snippet_id: str) -> None:
        try:
            await self._store.delete_by_id(owner, snippet_id)
        except NotFoundError:
            if not self._delete_not_found_is_success:
                raise
            # a retry after a lost success response also reports NotFound
            emit_event("snippet_delete_not_found_treated_as_success", owner=owner, snippet_id=snippet_id)

    async def _cached(self, owner: str, snippet_id: str) -> Snippet:
        snapshot = self._cache.get_snapshot(owner)
        found = snapshot.get(snippet_id)
        if found is None and snapshot.is_stale:
            found = (await self._cache.refresh(owner)).get(snippet_id)
        if found is None:
            raise NotFoundError("snippet not found", owner=owner, snippet_id=snippet_id)
        return found

    async def _run(
        self,
        owner: str,
        intent: str,
        snippet_id: Optional[str],
        call: Callable[[], Awaitable[T]],
    ) -> T:
        bind_owner(owner)
        was_live = self._cache.has_entry(owner)
        self._transition(owner, intent, MutationState.SUBMITTING, snippet_id)
        try:
            result = await call()
        except SnippetVaultError as e:
            record_mutation(intent, e.code)
            emit_event(
                "snippet_mutation_failed",
                severity="warning",
                owner=owner,
                intent=intent,
                snippet_id=snippet_id,
                error_code=e.code,
                error=str(e),
            )
            if isinstance(e, NotFoundError):
                self._reconcile(owner)
            self._transition(owner, intent, MutationState.FAILED, snippet_id, e)
            self._transition(owner, intent, MutationState.IDLE, snippet_id)
            raise

        if isinstance(result, Snippet):
            snippet_id = result.id
        record_mutation(intent, "success")
        emit_event("snippet_mutation_succeeded", owner=owner, intent=intent, snippet_id=snippet_id)
        self._transition(owner, intent, MutationState.SUCCEEDED, snippet_id)

        if was_live and not self._cache.has_entry(owner):
            # the owner signed out while the call was in flight
            emit_event("snippet_mutation_result_discarded", owner=owner, intent=intent)
            return result

        self._cache.invalidate(owner)
        self._transition(owner, intent, MutationState.CACHE_INVALIDATED, snippet_id)
        self._transition(owner, intent, MutationState.REFETCHING, snippet_id)
        try:
            await self._cache.refresh(owner)
        except SnippetVaultError as e:
            # the mutation is committed; the failure is on the snapshot
            logger.warning("refetch after %s failed: %s", intent, e)
            return result
        if not self._cache.has_entry(owner):
            return result
        if self._cache.get_snapshot(owner).is_stale:
            # a newer invalidation outran the refresh rounds; the entry stays stale
            emit_event(
                "snippet_mutation_refetch_stale",
                severity="warning",
                owner=owner,
                intent=intent,
                snippet_id=snippet_id,
            )
            return result
        self._transition(owner, intent, MutationState.FRESH, snippet_id)
        return result

    def _reconcile(self, owner: str) -> None:
        if not self._cache.has_entry(owner):
            return
        self._cache.invalidate(owner)
        self._cache.ensure_fresh(owner)
