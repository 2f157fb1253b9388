"""
Domain service: canonicalize tags and language identifiers.

Pure Python only. Tags are case-insensitive: surrounding whitespace is
trimmed and the result lowercased. A tag that is empty after trimming is
rejected. Tag sets are lists kept in insertion order; adding a tag that is
already present (after normalization) is a no-op.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from snippetvault.domain.errors import ValidationError
from snippetvault.domain.languages import Language, LanguageTag


def normalize_tag(raw: Optional[str]) -> str:
    """Return the canonical form of ``raw`` or raise ValidationError."""
    if not isinstance(raw, str):
        raise ValidationError("tag must be a string")
    tag = raw.strip().lower()
    if not tag:
        raise ValidationError("tag must not be empty")
    return tag


def normalize_tag_set(existing: List[str], raw: Optional[str]) -> List[str]:
    """Add ``raw`` to ``existing`` unless its normalized form is already present.

    ``existing`` is never mutated; when nothing changes the same list object
    is returned so callers can detect the no-op by identity.
    """
    tag = normalize_tag(raw)
    if tag in existing:
        return existing
    return [*existing, tag]


def normalize_tags(raw_tags: Optional[Iterable[str]]) -> List[str]:
    """Fold a whole raw list through ``normalize_tag_set``.

    Blank entries are skipped rather than rejected, mirroring how the editor
    drops empty tag input.
    """
    out: List[str] = []
    for raw in raw_tags or []:
        if isinstance(raw, str) and not raw.strip():
            continue
        out = normalize_tag_set(out, raw)
    return out


def remove_tag(existing: List[str], raw: Optional[str]) -> List[str]:
    tag = normalize_tag(raw)
    if tag not in existing:
        return existing
    return [t for t in existing if t != tag]


def normalize_language(raw: Optional[str], default: str = Language.OTHER.value) -> LanguageTag:
    return LanguageTag.parse(raw, default=default)
