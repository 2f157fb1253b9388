from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from snippetvault.domain.entities.snippet import Snippet


class ISnippetStore(ABC):
    """Remote store contract consumed by the cache and the dispatcher.

    Domain defines the contract; infrastructure implements it. Every call is
    scoped to ``owner``. Implementations raise the errors from
    ``snippetvault.domain.errors``: ``UnauthorizedError`` when the owner has no
    valid session, ``UnavailableError`` on transport failure and
    ``NotFoundError`` when no row matches ``(id, owner)``.
    """

    @abstractmethod
    async def list_by_owner(self, owner: str) -> List[Snippet]:  # sorted by updated_at desc
        raise NotImplementedError

    @abstractmethod
    async def insert(self, owner: str, fields: Dict[str, Any]) -> Snippet:  # store assigns id and timestamps
        raise NotImplementedError

    @abstractmethod
    async def update_by_id(self, owner: str, snippet_id: str, patch: Dict[str, Any]) -> Snippet:
        raise NotImplementedError

    @abstractmethod
    async def delete_by_id(self, owner: str, snippet_id: str) -> None:
        raise NotImplementedError
