from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from snippetvault.domain.languages import LanguageTag


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and value:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise ValueError(f"invalid timestamp: {value!r}")


@dataclass(frozen=True)
class Snippet:
    """Domain entity: a single owned code fragment as the store returned it.

    Kept framework-free to allow use across layers. Instances are immutable;
    the cache hands the same objects to every reader.
    """

    id: str
    owner: str
    title: str
    code: str
    language: LanguageTag
    created_at: datetime
    updated_at: datetime
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    is_favorite: bool = False

    def with_changes(self, **changes: Any) -> "Snippet":
        return replace(self, **changes)

    # ---------- Record mapping (store field names) ----------
    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.owner,
            "title": self.title,
            "description": self.description,
            "code": self.code,
            "language": self.language.value,
            "tags": list(self.tags),
            "is_favorite": bool(self.is_favorite),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_record(cls, d: Dict[str, Any]) -> "Snippet":
        return cls(
            id=str(d.get("id") or d.get("_id") or ""),
            owner=str(d.get("user_id") or ""),
            title=str(d.get("title") or ""),
            description=d.get("description"),
            code=str(d.get("code") or ""),
            language=LanguageTag.parse(d.get("language")),
            tags=list(d.get("tags") or []),
            is_favorite=bool(d.get("is_favorite", False)),
            created_at=_parse_timestamp(d.get("created_at")),
            updated_at=_parse_timestamp(d.get("updated_at")),
        )
