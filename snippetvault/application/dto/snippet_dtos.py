from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from snippetvault.domain.errors import ValidationError
from snippetvault.domain.services.normalizer import normalize_language, normalize_tags


def _require_text(name: str, value: Optional[str]) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")


@dataclass
class CreateSnippetDTO:
    title: str
    code: str
    language: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None

    def validate(self, *, max_code_size: Optional[int] = None) -> None:
        _require_text("title", self.title)
        _require_text("code", self.code)
        if max_code_size is not None and len(self.code) > max_code_size:
            raise ValidationError(f"code exceeds {max_code_size} characters")

    def to_fields(self, *, default_language: str) -> Dict[str, Any]:
        """Store fields for insert, with tags defaulted and normalized."""
        return {
            "title": self.title,
            "description": self.description,
            "code": self.code,
            "language": normalize_language(self.language, default=default_language).value,
            "tags": normalize_tags(self.tags),
            "is_favorite": False,
        }


@dataclass
class UpdateSnippetDTO:
    """Partial update. Fields left as None are not sent to the store."""

    title: Optional[str] = None
    description: Optional[str] = None
    code: Optional[str] = None
    language: Optional[str] = None
    tags: Optional[List[str]] = None
    is_favorite: Optional[bool] = None

    def validate(self, *, max_code_size: Optional[int] = None) -> None:
        if self.title is not None:
            _require_text("title", self.title)
        if self.code is not None:
            _require_text("code", self.code)
            if max_code_size is not None and len(self.code) > max_code_size:
                raise ValidationError(f"code exceeds {max_code_size} characters")
        if self.is_empty:
            raise ValidationError("update carries no changes")

    @property
    def is_empty(self) -> bool:
        return all(
            v is None
            for v in (self.title, self.description, self.code, self.language, self.tags, self.is_favorite)
        )

    def to_fields(self, *, default_language: str) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.title is not None:
            out["title"] = self.title
        if self.description is not None:
            out["description"] = self.description
        if self.code is not None:
            out["code"] = self.code
        if self.language is not None:
            out["language"] = normalize_language(self.language, default=default_language).value
        if self.tags is not None:
            out["tags"] = normalize_tags(self.tags)
        if self.is_favorite is not None:
            out["is_favorite"] = bool(self.is_favorite)
        return out
