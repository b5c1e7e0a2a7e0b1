"""Statusz probing and aggregate status evaluation."""

from vizier_monitor.health.prober import EndpointProber, ProbeResult, build_http_client
from vizier_monitor.health.status import CloudConnectorStrategy, StatusStrategy, reconcile_status

__all__ = [
    "CloudConnectorStrategy",
    "EndpointProber",
    "ProbeResult",
    "StatusStrategy",
    "build_http_client",
    "reconcile_status",
]
