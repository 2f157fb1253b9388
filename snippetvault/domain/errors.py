from __future__ import annotations

from typing import Optional


class SnippetVaultError(Exception):
    """Base error for every failure surfaced to the presentation layer."""

    code = "error"
    retryable = False

    def __init__(self, message: str = "", *, owner: Optional[str] = None, snippet_id: Optional[str] = None) -> None:
        super().__init__(message or self.code)
        self.owner = owner
        self.snippet_id = snippet_id


class ValidationError(SnippetVaultError, ValueError):
    """Local validation failed; no remote call was made."""

    code = "validation"


class UnauthorizedError(SnippetVaultError):
    """The owner has no active session. Callers should redirect to sign-in."""

    code = "unauthorized"


class NotFoundError(SnippetVaultError, LookupError):
    """No row matches (id, owner): a stale id or a cross-owner access."""

    code = "not_found"


class UnavailableError(SnippetVaultError):
    """Transport or server failure. Safe to retry manually."""

    code = "unavailable"
    retryable = True
