"""
Domain service: filter and summarize a cached snippet collection.

Everything here is a pure function of its inputs. The engine never re-sorts:
the input collection is already ``updated_at``-descending and the filtered
view keeps that relative order.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from snippetvault.domain.entities.query import QueryPredicate
from snippetvault.domain.entities.snippet import Snippet
from snippetvault.domain.languages import LanguageTag


def matches_text(snippet: Snippet, text: str) -> bool:
    needle = (text or "").lower()
    if not needle:
        return True
    if needle in snippet.title.lower():
        return True
    if snippet.description and needle in snippet.description.lower():
        return True
    return any(needle in tag.lower() for tag in snippet.tags)


def matches_language(snippet: Snippet, language: Optional[LanguageTag]) -> bool:
    if language is None:
        return True
    return snippet.language == language


def matches_favorite(snippet: Snippet, favorites_only: bool) -> bool:
    return snippet.is_favorite or not favorites_only


def matches(snippet: Snippet, predicate: QueryPredicate) -> bool:
    return (
        matches_text(snippet, predicate.text)
        and matches_language(snippet, predicate.language)
        and matches_favorite(snippet, predicate.favorites_only)
    )


def filter_snippets(collection: Iterable[Snippet], predicate: Optional[QueryPredicate] = None) -> List[Snippet]:
    if predicate is None or predicate.is_empty:
        return list(collection)
    return [s for s in collection if matches(s, predicate)]


def group_counts_by_language(collection: Iterable[Snippet]) -> Dict[str, int]:
    """Exact per-language counts keyed by the stored raw language value."""
    return dict(Counter(s.language.value for s in collection))


@dataclass(frozen=True)
class SnippetStats:
    total: int = 0
    favorites: int = 0
    by_language: Dict[str, int] = field(default_factory=dict)


def summarize(collection: Sequence[Snippet]) -> SnippetStats:
    return SnippetStats(
        total=len(collection),
        favorites=sum(1 for s in collection if s.is_favorite),
        by_language=group_counts_by_language(collection),
    )
