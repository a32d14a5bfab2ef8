from __future__ import annotations
import threading
from functools import wraps
from typing import Optional
from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CollectorRegistry,
    CONTENT_TYPE_LATEST,
)
from prometheus_client import REGISTRY as DEFAULT_REGISTRY

from fastapi import FastAPI, Response

_METRICS_REGISTRY: CollectorRegistry = DEFAULT_REGISTRY
_metrics_lock = threading.Lock()

SEARCH_QUERIES = Counter("search_queries_total", "Search queries executed by the dispatcher", ["outcome"], registry=_METRICS_REGISTRY)
SEARCH_LATENCY = Histogram("search_query_seconds", "Latency of individual search queries (seconds)", registry=_METRICS_REGISTRY, buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0))
PAGES_PROCESSED = Counter("pages_processed_total", "Pages run through fetch, extract and analyze", ["outcome"], registry=_METRICS_REGISTRY)
QUEUE_ITEMS = Counter("search_queue_items_total", "Search queue item transitions", ["event"], registry=_METRICS_REGISTRY)
SESSION_DURATION = Histogram("research_session_seconds", "Wall-clock duration of research sessions (seconds)", ["status"], registry=_METRICS_REGISTRY, buckets=(1.0, 5.0, 10.0, 20.0, 30.0, 45.0, 60.0, 120.0))


def safe_record(func):
    @wraps(func)
    def wrapped(*args, **kwargs):
        try:
            with _metrics_lock:
                return func(*args, **kwargs)
        except Exception:
            return None
    return wrapped


@safe_record
def record_search_query(outcome: str = "success", latency_s: Optional[float] = None) -> None:
    SEARCH_QUERIES.labels(outcome=outcome).inc(1)
    if latency_s is not None:
        SEARCH_LATENCY.observe(float(latency_s))


@safe_record
def record_page(outcome: str = "success") -> None:
    PAGES_PROCESSED.labels(outcome=outcome).inc(1)


@safe_record
def record_queue_event(event: str) -> None:
    QUEUE_ITEMS.labels(event=event).inc(1)


@safe_record
def record_session(status: str, duration_s: float) -> None:
    SESSION_DURATION.labels(status=status).observe(float(duration_s))


def metrics_endpoint():
    try:
        data = generate_latest(_METRICS_REGISTRY)
        return data, CONTENT_TYPE_LATEST
    except Exception:
        return b"", CONTENT_TYPE_LATEST


def attach_metrics(app: FastAPI | None) -> None:
    if app is None:
        return

    async def _fastapi_metrics():
        payload, content_type = metrics_endpoint()
        return Response(content=payload, media_type=content_type)

    existing = any(getattr(r, "path", "") == "/metrics" for r in getattr(app, "routes", []))
    if not existing:
        app.add_api_route("/metrics", _fastapi_metrics, methods=["GET"])


__all__ = [
    "record_search_query",
    "record_page",
    "record_queue_event",
    "record_session",
    "metrics_endpoint",
    "attach_metrics",
]
