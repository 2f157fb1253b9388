"""
Prometheus metrics for the snippet cache and mutation dispatcher.
"""
from __future__ import annotations

import time
from contextlib import contextmanager

from prometheus_client import REGISTRY, Counter, Histogram


def _ensure_metric(name: str, create_fn):
    """Create a metric, or return the one already registered under ``name``.

    Avoids the duplicate-registration ValueError when the module is reloaded
    (importlib.reload in tests).
    """
    existing = getattr(REGISTRY, "_names_to_collectors", {}).get(name)
    if existing is not None:
        return existing
    try:
        return create_fn()
    except ValueError:
        return getattr(REGISTRY, "_names_to_collectors", {}).get(name)


cache_fetch_total = _ensure_metric(
    "snippet_cache_fetch_total",
    lambda: Counter("snippet_cache_fetch_total", "Snippet cache fetches", ["outcome"]),
)
cache_fetch_seconds = _ensure_metric(
    "snippet_cache_fetch_seconds",
    lambda: Histogram("snippet_cache_fetch_seconds", "Snippet cache fetch duration in seconds"),
)
mutations_total = _ensure_metric(
    "snippet_mutations_total",
    lambda: Counter("snippet_mutations_total", "Snippet mutations", ["intent", "outcome"]),
)


def record_fetch(outcome: str) -> None:
    cache_fetch_total.labels(outcome=outcome).inc()


def record_mutation(intent: str, outcome: str) -> None:
    mutations_total.labels(intent=intent, outcome=outcome).inc()


@contextmanager
def fetch_timer():
    start = time.perf_counter()
    try:
        yield
    finally:
        cache_fetch_seconds.observe(max(0.0, time.perf_counter() - start))
