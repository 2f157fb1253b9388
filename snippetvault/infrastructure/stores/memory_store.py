from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from snippetvault.domain.entities.snippet import Snippet
from snippetvault.domain.errors import NotFoundError, UnauthorizedError
from snippetvault.domain.interfaces.snippet_store_interface import ISnippetStore
from snippetvault.domain.languages import LanguageTag

_MUTABLE_FIELDS = {"title", "description", "code", "language", "tags", "is_favorite"}


class InMemorySnippetStore(ISnippetStore):
    """Process-local store implementing the remote store contract.

    Useful for development and tests. Owners must hold a session
    (``open_session``) or every call fails with ``UnauthorizedError``.
    Timestamps come from ``clock`` and are forced strictly increasing so
    ``updated_at`` ordering is total even on a coarse clock.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None, *, require_session: bool = True) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._require_session = require_session
        self._rows: Dict[str, Snippet] = {}
        self._sessions: Set[str] = set()
        self._last_ts: Optional[datetime] = None

    # ---------- Sessions ----------
    def open_session(self, owner: str) -> None:
        self._sessions.add(owner)

    def close_session(self, owner: str) -> None:
        self._sessions.discard(owner)

    def _authorize(self, owner: str) -> None:
        if not owner or (self._require_session and owner not in self._sessions):
            raise UnauthorizedError("no active session", owner=owner)

    def _now(self) -> datetime:
        now = self._clock()
        if self._last_ts is not None and now <= self._last_ts:
            now = self._last_ts + timedelta(microseconds=1)
        self._last_ts = now
        return now

    # ---------- Contract ----------
    async def list_by_owner(self, owner: str) -> List[Snippet]:
        self._authorize(owner)
        rows = [s for s in self._rows.values() if s.owner == owner]
        rows.sort(key=lambda s: s.updated_at, reverse=True)
        return rows

    async def insert(self, owner: str, fields: Dict[str, Any]) -> Snippet:
        self._authorize(owner)
        now = self._now()
        snippet = Snippet(
            id=str(uuid.uuid4()),
            owner=owner,
            title=str(fields.get("title") or ""),
            description=fields.get("description"),
            code=str(fields.get("code") or ""),
            language=LanguageTag.parse(fields.get("language")),
            tags=list(fields.get("tags") or []),
            is_favorite=bool(fields.get("is_favorite", False)),
            created_at=now,
            updated_at=now,
        )
        self._rows[snippet.id] = snippet
        return snippet

    async def update_by_id(self, owner: str, snippet_id: str, patch: Dict[str, Any]) -> Snippet:
        self._authorize(owner)
        current = self._owned(owner, snippet_id)
        changes: Dict[str, Any] = {k: v for k, v in patch.items() if k in _MUTABLE_FIELDS}
        if "language" in changes:
            changes["language"] = LanguageTag.parse(changes["language"])
        if "tags" in changes:
            changes["tags"] = list(changes["tags"] or [])
        updated = current.with_changes(updated_at=self._now(), **changes)
        self._rows[snippet_id] = updated
        return updated

    async def delete_by_id(self, owner: str, snippet_id: str) -> None:
        self._authorize(owner)
        self._owned(owner, snippet_id)
        del self._rows[snippet_id]

    def _owned(self, owner: str, snippet_id: str) -> Snippet:
        row = self._rows.get(snippet_id)
        if row is None or row.owner != owner:
            raise NotFoundError("snippet not found", owner=owner, snippet_id=snippet_id)
        return row
