"""In-memory state maintained from the cluster watch."""

from vizier_monitor.cache.pod_registry import PodRegistry

__all__ = ["PodRegistry"]
