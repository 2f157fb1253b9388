from __future__ import annotations

# Public API of the composition root
from .container import SnippetVaultServices, build_services, build_store, get_services, reset_services  # noqa: F401
