"""
Full-collection export for user-initiated download.

Produces a JSON array of snippet records using the store's field names.
There is no import path.
"""
from __future__ import annotations

import json
from typing import Iterable

from snippetvault.domain.entities.snippet import Snippet

EXPORT_FILENAME = "snippets-export.json"
EXPORT_MIME_TYPE = "application/json"


def export_snippets_json(snippets: Iterable[Snippet]) -> str:
    return json.dumps([s.to_record() for s in snippets], indent=2, ensure_ascii=False)


def export_snippets_bytes(snippets: Iterable[Snippet]) -> bytes:
    return export_snippets_json(snippets).encode("utf-8")
