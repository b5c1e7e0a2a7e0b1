"""Prometheus metrics for vizier-monitor."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# Watcher metrics
watcher_events_total = Counter(
    "vizier_monitor_watcher_events_total",
    "Total watch events received by type",
    ["watcher", "event_type"],
)

watcher_reconnects_total = Counter(
    "vizier_monitor_watcher_reconnects_total",
    "Total watcher reconnection attempts",
    ["watcher", "reason"],
)

watcher_relistings_total = Counter(
    "vizier_monitor_watcher_relistings_total",
    "Total watcher relist operations",
    ["watcher"],
)

watcher_backoff_seconds = Histogram(
    "vizier_monitor_watcher_backoff_seconds",
    "Watcher backoff duration in seconds",
    ["watcher"],
    buckets=(0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0),
)

# Registry metrics
registry_components = Gauge(
    "vizier_monitor_registry_components",
    "Number of components with a recorded pod",
)

# Probe metrics
probes_total = Counter(
    "vizier_monitor_probes_total",
    "Total statusz probes by result",
    ["result"],
)

# Reconciler metrics
reconcile_total = Counter(
    "vizier_monitor_reconcile_total",
    "Total reconciliation ticks by outcome",
    ["outcome"],
)

reconcile_duration_seconds = Histogram(
    "vizier_monitor_reconcile_duration_seconds",
    "Reconciliation tick duration in seconds",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

vizier_phase = Gauge(
    "vizier_monitor_vizier_phase",
    "Current aggregate Vizier phase (1 for the active phase)",
    ["phase"],
)


def set_vizier_phase(current: str, phases: list[str]) -> None:
    """Set the phase gauge to 1 for ``current`` and 0 for every other phase."""
    for phase in phases:
        vizier_phase.labels(phase=phase).set(1.0 if phase == current else 0.0)
