"""Periodic reconciliation of the Vizier resource status."""

from vizier_monitor.reconciler.scheduler import Reconciler
from vizier_monitor.reconciler.store import VizierStore, apply_status

__all__ = ["Reconciler", "VizierStore", "apply_status"]
