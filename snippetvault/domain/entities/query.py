from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from snippetvault.domain.languages import Language, LanguageTag


@dataclass(frozen=True)
class QueryPredicate:
    """Ephemeral filter held by the presentation layer.

    All active clauses are ANDed; an empty clause always matches. A language
    given as a raw value, display label or ``Language`` member is resolved
    to a ``LanguageTag`` on construction.
    """

    text: str = ""
    language: Union[LanguageTag, Language, str, None] = None
    favorites_only: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "text", self.text or "")
        object.__setattr__(self, "language", LanguageTag.coerce(self.language))

    @property
    def is_empty(self) -> bool:
        return not self.text and self.language is None and not self.favorites_only

    def cleared(self) -> "QueryPredicate":
        return QueryPredicate()
