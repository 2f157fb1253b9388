from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, TypeVar

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, IndexModel, ReturnDocument
from pymongo.errors import PyMongoError

from snippetvault.domain.entities.snippet import Snippet
from snippetvault.domain.errors import NotFoundError, UnauthorizedError, UnavailableError
from snippetvault.domain.interfaces.snippet_store_interface import ISnippetStore
from snippetvault.observability import emit_event

T = TypeVar("T")

_MUTABLE_FIELDS = ("title", "description", "code", "language", "tags", "is_favorite")


class MongoSnippetStore(ISnippetStore):
    """MongoDB-backed store implementing the domain interface.

    PyMongo is synchronous; every call runs in a worker thread via
    ``asyncio.to_thread`` so the event loop never blocks. All filters carry
    both ``_id`` and ``user_id`` so a foreign id reports NotFound.
    Timestamps are truncated to the millisecond BSON keeps and forced
    strictly increasing per store instance.
    """

    def __init__(self, collection: Any, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._collection = collection
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._last_ts: Optional[datetime] = None

    @classmethod
    def from_url(cls, url: str, database: str, collection: str, *, server_selection_timeout_ms: int = 3_000) -> "MongoSnippetStore":
        from pymongo import MongoClient

        client = MongoClient(url, serverSelectionTimeoutMS=server_selection_timeout_ms, tz_aware=True)
        return cls(client[database][collection])

    def ensure_indexes(self) -> bool:
        """Best-effort creation of the owner listing index. Returns False on driver errors."""
        try:
            self._collection.create_indexes([
                IndexModel([("user_id", ASCENDING), ("updated_at", DESCENDING)], name="user_updated"),
            ])
        except PyMongoError as e:
            emit_event("snippet_store_index_failed", severity="warning", error=str(e))
            return False
        return True

    def _now(self) -> datetime:
        now = self._clock()
        now = now.replace(microsecond=now.microsecond - now.microsecond % 1000)
        if self._last_ts is not None and now <= self._last_ts:
            now = self._last_ts + timedelta(milliseconds=1)
        self._last_ts = now
        return now

    # ---------- Contract ----------
    async def list_by_owner(self, owner: str) -> List[Snippet]:
        self._authorize(owner)

        def _fetch() -> List[Dict[str, Any]]:
            return list(self._collection.find({"user_id": owner}).sort("updated_at", DESCENDING))

        docs = await self._call("list_by_owner", owner, _fetch)
        return [self._from_db_doc(d) for d in docs]

    async def insert(self, owner: str, fields: Dict[str, Any]) -> Snippet:
        self._authorize(owner)
        now = self._now()
        doc: Dict[str, Any] = {k: fields.get(k) for k in _MUTABLE_FIELDS}
        doc["tags"] = list(doc.get("tags") or [])
        doc["is_favorite"] = bool(doc.get("is_favorite"))
        doc.update({"user_id": owner, "created_at": now, "updated_at": now})

        def _insert() -> Dict[str, Any]:
            res = self._collection.insert_one(doc)
            return {**doc, "_id": res.inserted_id}

        saved = await self._call("insert", owner, _insert)
        return self._from_db_doc(saved)

    async def update_by_id(self, owner: str, snippet_id: str, patch: Dict[str, Any]) -> Snippet:
        self._authorize(owner)
        query = self._owned_query(owner, snippet_id)
        changes = {k: v for k, v in patch.items() if k in _MUTABLE_FIELDS}
        changes["updated_at"] = self._now()

        def _update() -> Optional[Dict[str, Any]]:
            return self._collection.find_one_and_update(
                query,
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )

        doc = await self._call("update_by_id", owner, _update)
        if not isinstance(doc, dict):
            raise NotFoundError("snippet not found", owner=owner, snippet_id=snippet_id)
        return self._from_db_doc(doc)

    async def delete_by_id(self, owner: str, snippet_id: str) -> None:
        self._authorize(owner)
        query = self._owned_query(owner, snippet_id)

        def _delete() -> int:
            return int(self._collection.delete_one(query).deleted_count or 0)

        deleted = await self._call("delete_by_id", owner, _delete)
        if deleted == 0:
            raise NotFoundError("snippet not found", owner=owner, snippet_id=snippet_id)

    # ---------- Helpers ----------
    @staticmethod
    def _authorize(owner: str) -> None:
        if not owner:
            raise UnauthorizedError("no active session")

    @staticmethod
    def _owned_query(owner: str, snippet_id: str) -> Dict[str, Any]:
        try:
            oid = ObjectId(snippet_id)
        except (InvalidId, TypeError):
            raise NotFoundError("snippet not found", owner=owner, snippet_id=snippet_id)
        return {"_id": oid, "user_id": owner}

    async def _call(self, operation: str, owner: str, fn: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(fn)
        except PyMongoError as e:
            emit_event(
                "snippet_store_error",
                severity="error",
                operation=operation,
                owner=owner,
                error=str(e),
            )
            raise UnavailableError(str(e) or type(e).__name__, owner=owner) from e

    @staticmethod
    def _from_db_doc(d: Dict[str, Any]) -> Snippet:
        record = dict(d)
        record["id"] = str(record.pop("_id", "") or "")
        return Snippet.from_record(record)
