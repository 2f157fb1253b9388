from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

from snippetvault.application.services.mutation_dispatcher import MutationDispatcher
from snippetvault.application.services.snippet_cache import SnippetCache
from snippetvault.config import SnippetVaultConfig
from snippetvault.domain.interfaces.snippet_store_interface import ISnippetStore


@dataclass(frozen=True)
class SnippetVaultServices:
    store: ISnippetStore
    cache: SnippetCache
    dispatcher: MutationDispatcher


_services_singleton: Optional[SnippetVaultServices] = None
_singleton_lock = threading.Lock()


def build_store(cfg: SnippetVaultConfig) -> ISnippetStore:
    if cfg.STORE_BACKEND == "mongodb":
        # Lazy import so the memory backend never needs a MongoDB client
        from snippetvault.infrastructure.database.mongodb.snippet_store import MongoSnippetStore

        store = MongoSnippetStore.from_url(
            str(cfg.MONGODB_URL),
            cfg.DATABASE_NAME,
            cfg.SNIPPETS_COLLECTION,
            server_selection_timeout_ms=cfg.MONGODB_SERVER_SELECTION_TIMEOUT_MS,
        )
        store.ensure_indexes()
        return store
    from snippetvault.infrastructure.stores.memory_store import InMemorySnippetStore

    return InMemorySnippetStore()


def build_services(cfg: SnippetVaultConfig, store: Optional[ISnippetStore] = None) -> SnippetVaultServices:
    store = store if store is not None else build_store(cfg)
    cache = SnippetCache(store, refresh_max_attempts=cfg.REFRESH_MAX_ATTEMPTS)
    dispatcher = MutationDispatcher(
        store,
        cache,
        default_language=cfg.DEFAULT_LANGUAGE,
        max_code_size=cfg.MAX_CODE_SIZE,
        delete_not_found_is_success=cfg.DELETE_NOT_FOUND_IS_SUCCESS,
    )
    return SnippetVaultServices(store=store, cache=cache, dispatcher=dispatcher)


def get_services() -> SnippetVaultServices:
    """
    Composition Root: build and return the process-wide services singleton.
    Keeps construction inside infrastructure, so the presentation layer only
    depends on the application layer.
    """
    global _services_singleton
    if _services_singleton is not None:
        return _services_singleton

    # Ensure singleton creation is thread-safe under concurrent first requests
    with _singleton_lock:
        if _services_singleton is None:
            from snippetvault.config import config
            from snippetvault.observability import setup_structlog_logging

            setup_structlog_logging(config.LOG_LEVEL, config.LOG_FORMAT)
            _services_singleton = build_services(config)
        return _services_singleton


def reset_services() -> None:
    """Drop the singleton (tests, config reload). Cached entries are discarded."""
    global _services_singleton
    with _singleton_lock:
        if _services_singleton is not None:
            _services_singleton.cache.clear()
        _services_singleton = None
