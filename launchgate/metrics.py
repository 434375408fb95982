"""Prometheus metrics for the launch gate runtime."""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

DISPATCH_TOTAL = Counter(
    "lg_dispatch_total",
    "Dispatches grouped by action and terminal outcome",
    labelnames=("action", "outcome"),
)

READINESS_WAIT = Histogram(
    "lg_readiness_wait_seconds",
    "Time between arming a dispatcher and its terminal state",
    labelnames=("action",),
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60),
)

DISPATCHERS_ARMED = Gauge(
    "lg_dispatchers_armed",
    "Dispatchers currently armed and polling",
)

LIFECYCLE_EVENTS = Counter(
    "lg_lifecycle_events_total",
    "Host lifecycle events received",
    labelnames=("event",),
)

SIGNAL_WRITES = Counter(
    "lg_signal_writes_total",
    "Writes to the readiness signal channel per feed",
    labelnames=("feed",),
)
