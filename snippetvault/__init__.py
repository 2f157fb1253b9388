"""SnippetVault: client-side snippet cache and query engine."""

__version__ = "1.0.0"
