"""Fixed-interval status reconciler.

Every tick evaluates the status strategy against the current registry
snapshot and writes the result onto the Vizier resource. A failed evaluation,
get or update is logged and the tick is skipped; the next tick is the retry.
"""

from __future__ import annotations

import asyncio
import contextlib
import time

from vizier_monitor.cache.pod_registry import PodRegistry
from vizier_monitor.health.status import CloudConnectorStrategy, Prober, StatusStrategy
from vizier_monitor.models.status import AggregatePhase, StatusResult
from vizier_monitor.observability.logging import get_logger
from vizier_monitor.observability.metrics import (
    reconcile_duration_seconds,
    reconcile_total,
    set_vizier_phase,
)
from vizier_monitor.reconciler.store import VizierStore, apply_status

DEFAULT_INTERVAL_S: float = 20.0

_PHASES: list[str] = [phase.value for phase in AggregatePhase]


class Reconciler:
    """Periodically reconciles the Vizier status from pods and statusz."""

    def __init__(
        self,
        registry: PodRegistry,
        prober: Prober,
        store: VizierStore,
        stop_event: asyncio.Event,
        strategy: StatusStrategy | None = None,
        interval_s: float = DEFAULT_INTERVAL_S,
    ) -> None:
        self._registry = registry
        self._prober = prober
        self._store = store
        self._stop = stop_event
        self._strategy: StatusStrategy = strategy or CloudConnectorStrategy()
        self._interval_s = interval_s
        self._log = get_logger("reconciler")

    async def run(self) -> None:
        """Tick every ``interval_s`` seconds until the stop event is set."""
        self._log.info("reconciler_started", interval_s=self._interval_s)
        while not self._stop.is_set():
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop.wait(), timeout=self._interval_s)
            if self._stop.is_set():
                break
            await self.reconcile_once()
        self._log.info("reconciler_stopped")

    async def reconcile_once(self) -> StatusResult | None:
        """Run one tick. Returns the written result, or None if the tick was skipped."""
        start = time.monotonic()
        try:
            try:
                result = await self._strategy.evaluate(self._registry.snapshot(), self._prober)
            except Exception as exc:
                self._log.error("status_evaluation_failed", error=str(exc), exc_info=True)
                reconcile_total.labels(outcome="evaluate_failed").inc()
                return None

            try:
                vz = await self._store.get()
            except Exception as exc:
                self._log.error(
                    "vizier_get_failed",
                    namespace=self._store.namespace,
                    name=self._store.name,
                    error=str(exc),
                )
                reconcile_total.labels(outcome="get_failed").inc()
                return None

            apply_status(vz, result)
            try:
                await self._store.update(vz)
            except Exception as exc:
                self._log.error(
                    "vizier_update_failed",
                    namespace=self._store.namespace,
                    name=self._store.name,
                    error=str(exc),
                )
                reconcile_total.labels(outcome="update_failed").inc()
                return None
        finally:
            reconcile_duration_seconds.observe(time.monotonic() - start)

        reconcile_total.labels(outcome="updated").inc()
        set_vizier_phase(result.phase.value, _PHASES)
        self._log.debug("vizier_status_updated", phase=result.phase.value, reason=result.reason)
        return result
