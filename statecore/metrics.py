"""
Prometheus metrics for the dispatch engine.

Metrics are process-wide. Tracking helpers are no-ops until init_metrics()
has run, so stores used in tests or scripts pay nothing for them.

Usage:
    from statecore.metrics import init_metrics, start_metrics_server

    start_metrics_server(enabled=True, port=8080)
    # curl http://localhost:8080/metrics
"""

import logging
import threading
from contextlib import contextmanager
from typing import Generator, Optional

from prometheus_client import Counter, Histogram, start_http_server

logger = logging.getLogger(__name__)

DISPATCHES_TOTAL: Optional[Counter] = None
EFFECTS_TOTAL: Optional[Counter] = None
DISPATCH_FAILURES: Optional[Counter] = None
DISPATCH_DURATION: Optional[Histogram] = None

_metrics_initialized = False
_metrics_lock = threading.Lock()


def init_metrics() -> None:
    """
    Create the metric objects (idempotent, thread-safe).
    """
    global DISPATCHES_TOTAL, EFFECTS_TOTAL, DISPATCH_FAILURES, DISPATCH_DURATION
    global _metrics_initialized

    with _metrics_lock:
        if _metrics_initialized:
            return

        DISPATCHES_TOTAL = Counter(
            "statecore_dispatches_total",
            "Total number of events processed by the dispatcher",
            labelnames=["event_id", "kind"],
        )

        EFFECTS_TOTAL = Counter(
            "statecore_effects_total",
            "Total number of user effects invoked",
            labelnames=["effect_id"],
        )

        DISPATCH_FAILURES = Counter(
            "statecore_dispatch_failures_total",
            "Total number of dispatch steps aborted by an error",
            labelnames=["error"],
        )

        # Top-level dispatch step, nested dispatches included
        DISPATCH_DURATION = Histogram(
            "statecore_dispatch_duration_seconds",
            "Duration of a dispatch step in seconds",
            buckets=(0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
        )

        _metrics_initialized = True
        logger.info("Prometheus metrics initialized")


def metrics_enabled() -> bool:
    return _metrics_initialized


def start_metrics_server(enabled: bool, port: int) -> None:
    """
    Start the Prometheus HTTP endpoint in a daemon thread.

    Initializes the metrics first. Does nothing when enabled is False.
    """
    if not enabled:
        logger.info("Metrics server disabled")
        return

    init_metrics()
    start_http_server(port, addr="0.0.0.0")
    logger.info(f"Metrics server started on http://0.0.0.0:{port}/metrics")


@contextmanager
def track_dispatch_duration() -> Generator[None, None, None]:
    if DISPATCH_DURATION is None:
        yield
        return

    with DISPATCH_DURATION.time():
        yield


def track_dispatch(event_id, kind: str) -> None:
    if DISPATCHES_TOTAL is not None:
        DISPATCHES_TOTAL.labels(event_id=str(event_id), kind=kind).inc()


def track_effect(effect_id) -> None:
    if EFFECTS_TOTAL is not None:
        EFFECTS_TOTAL.labels(effect_id=str(effect_id)).inc()


def track_failure(error: BaseException) -> None:
    if DISPATCH_FAILURES is not None:
        DISPATCH_FAILURES.labels(error=type(error).__name__).inc()
