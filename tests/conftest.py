"""
tests/conftest.py

Shared fixtures: an in-memory store with a deterministic clock, a gated
store whose fetches can be held open, and the cache/dispatcher wired on top.
No external IO.
"""
import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

os.environ.setdefault("STORE_BACKEND", "memory")

from snippetvault.application.services.mutation_dispatcher import MutationDispatcher
from snippetvault.application.services.snippet_cache import SnippetCache
from snippetvault.domain.entities.snippet import Snippet
from snippetvault.domain.languages import LanguageTag
from snippetvault.infrastructure.stores.memory_store import InMemorySnippetStore

OWNER = "user-1"
OTHER = "user-2"


class TickClock:
    """Deterministic clock: every call advances by one second."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now


class GatedStore(InMemorySnippetStore):
    """In-memory store whose list_by_owner can be held open and made to fail."""

    def __init__(self, clock=None):
        super().__init__(clock=clock)
        self.list_calls = 0
        self.gate: Optional[asyncio.Event] = None
        self.fail_with: Optional[Exception] = None

    def hold(self) -> asyncio.Event:
        self.gate = asyncio.Event()
        return self.gate

    async def list_by_owner(self, owner: str) -> List[Snippet]:
        self.list_calls += 1
        rows = await super().list_by_owner(owner)
        if self.gate is not None:
            gate = self.gate
            await gate.wait()
            if self.gate is gate:
                self.gate = None
        if self.fail_with is not None:
            raise self.fail_with
        return rows


def make_snippet(
    snippet_id: str,
    *,
    title: str = "Snippet",
    description: Optional[str] = None,
    language: str = "python",
    tags: Optional[List[str]] = None,
    is_favorite: bool = False,
    minutes: int = 0,
    owner: str = OWNER,
) -> Snippet:
    ts = datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=minutes)
    return Snippet(
        id=snippet_id,
        owner=owner,
        title=title,
        description=description,
        code="print(1)",
        language=LanguageTag.parse(language),
        tags=list(tags or []),
        is_favorite=is_favorite,
        created_at=ts,
        updated_at=ts,
    )


@pytest.fixture
def clock():
    return TickClock()


@pytest.fixture
def store(clock):
    s = GatedStore(clock=clock)
    s.open_session(OWNER)
    s.open_session(OTHER)
    return s


@pytest.fixture
def cache(store):
    return SnippetCache(store)


@pytest.fixture
def dispatcher(store, cache):
    return MutationDispatcher(store, cache, default_language="javascript", max_code_size=1_000)
