from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Union


class Language(str, Enum):
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    PYTHON = "python"
    HTML = "html"
    CSS = "css"
    JSON = "json"
    SQL = "sql"
    BASH = "bash"
    RUST = "rust"
    GO = "go"
    JAVA = "java"
    CSHARP = "csharp"
    CPP = "cpp"
    PHP = "php"
    RUBY = "ruby"
    SWIFT = "swift"
    KOTLIN = "kotlin"
    OTHER = "other"


LANGUAGE_LABELS: Dict[Language, str] = {
    Language.JAVASCRIPT: "JavaScript",
    Language.TYPESCRIPT: "TypeScript",
    Language.PYTHON: "Python",
    Language.HTML: "HTML",
    Language.CSS: "CSS",
    Language.JSON: "JSON",
    Language.SQL: "SQL",
    Language.BASH: "Bash",
    Language.RUST: "Rust",
    Language.GO: "Go",
    Language.JAVA: "Java",
    Language.CSHARP: "C#",
    Language.CPP: "C++",
    Language.PHP: "PHP",
    Language.RUBY: "Ruby",
    Language.SWIFT: "Swift",
    Language.KOTLIN: "Kotlin",
    Language.OTHER: "Other",
}

_BY_VALUE: Dict[str, Language] = {member.value: member for member in Language}
_BY_LABEL: Dict[str, str] = {label.lower(): member.value for member, label in LANGUAGE_LABELS.items()}


@dataclass(frozen=True)
class LanguageTag:
    """A snippet's language: the raw stored value plus its registry member.

    Unknown raw values are kept verbatim (so they round-trip through the
    store) but resolve to ``Language.OTHER`` for display.
    """

    value: str

    @classmethod
    def parse(cls, raw: Optional[str], default: str = Language.OTHER.value) -> "LanguageTag":
        text = (raw or "").strip().lower()
        if not text:
            text = (default or Language.OTHER.value).strip().lower()
        return cls(text)

    @classmethod
    def coerce(cls, raw: Union["LanguageTag", Language, str, None]) -> Optional["LanguageTag"]:
        """Resolve a filter value (tag, member, raw value or display label); blank gives None."""
        if raw is None or isinstance(raw, LanguageTag):
            return raw
        text = str(raw.value if isinstance(raw, Language) else raw).strip().lower()
        if not text:
            return None
        return cls(_BY_LABEL.get(text, text))

    @property
    def kind(self) -> Language:
        return _BY_VALUE.get(self.value, Language.OTHER)

    @property
    def is_known(self) -> bool:
        return self.value in _BY_VALUE

    @property
    def label(self) -> str:
        return LANGUAGE_LABELS[self.kind]

    @property
    def css_class(self) -> str:
        if not self.is_known:
            return "language-default"
        return f"language-{self.value}"

    def __str__(self) -> str:
        return self.value
