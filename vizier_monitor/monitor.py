"""Vizier monitor lifecycle.

Owns one monitoring session: the HTTPS client, the shared stop event, the
pod registry, the pod watcher and the reconciler. ``start()`` performs the
initial pod list synchronously and then launches the watch and reconcile
loops as background tasks; ``stop()`` sets the stop event so both loops exit
at their next wait.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from vizier_monitor.cache.pod_registry import PodRegistry
from vizier_monitor.collector.pod_watcher import PodWatcher
from vizier_monitor.health.prober import EndpointProber, build_http_client
from vizier_monitor.health.status import CloudConnectorStrategy, StatusStrategy
from vizier_monitor.models.config import MonitorConfig
from vizier_monitor.observability.logging import get_logger
from vizier_monitor.reconciler.scheduler import Reconciler
from vizier_monitor.reconciler.store import VizierStore

_STOP_GRACE_SECONDS = 15.0


class MonitorError(Exception):
    """Raised on invalid monitor lifecycle transitions."""


class VizierMonitor:
    """Watches the Vizier pods and keeps the Vizier status up to date.

    A monitor runs once: after :meth:`stop` it cannot be started again.
    """

    def __init__(
        self,
        core_api: Any,
        custom_api: Any,
        config: MonitorConfig,
        strategy: StatusStrategy | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Args:
            core_api: ``CoreV1Api`` used to list and watch pods.
            custom_api: ``CustomObjectsApi`` used to read and write the Vizier.
            config: Monitor settings.
            strategy: Status strategy; defaults to the cloud-connector proxy.
            http_client: Client for statusz probes; built from config if None.
        """
        self._core_api = core_api
        self._custom_api = custom_api
        self._config = config
        self._strategy = strategy or CloudConnectorStrategy(config.cloud_connector_label)
        self._http_client = http_client
        self._log = get_logger("monitor")

        self._stop_event: asyncio.Event | None = None
        self._registry: PodRegistry | None = None
        self._watcher: PodWatcher | None = None
        self._prober: EndpointProber | None = None
        self._reconciler: Reconciler | None = None
        self._tasks: list[asyncio.Task[None]] = []
        self._stopped = False

    @property
    def running(self) -> bool:
        return bool(self._tasks) and not self._stopped

    @property
    def registry(self) -> PodRegistry | None:
        return self._registry

    @property
    def resource_version(self) -> str:
        """Current watch cursor, or "" before the initial sync."""
        return self._watcher.resource_version if self._watcher is not None else ""

    @property
    def reconciler(self) -> Reconciler | None:
        return self._reconciler

    async def start(self) -> None:
        """Sync the initial pod state and launch the watch and reconcile loops.

        Raises:
            MonitorError: the monitor was already stopped.
            WatcherError: the initial pod list failed; nothing is left running.
        """
        if self._stopped:
            raise MonitorError("monitor has been stopped and cannot be restarted")
        if self._tasks:
            return

        cfg = self._config
        client = self._http_client or build_http_client(float(cfg.probe_timeout_seconds))
        self._prober = EndpointProber(client)
        self._stop_event = asyncio.Event()
        self._registry = PodRegistry()
        self._watcher = PodWatcher(
            self._core_api,
            cfg.namespace,
            self._registry,
            self._stop_event,
            forget_deleted=cfg.forget_deleted_pods,
            max_retries=cfg.watch_max_retries,
        )

        try:
            await self._watcher.initial_sync()
        except Exception:
            await self._prober.aclose()
            raise

        self._reconciler = Reconciler(
            self._registry,
            self._prober,
            VizierStore(self._custom_api, cfg.namespace, cfg.vizier_name),
            self._stop_event,
            strategy=self._strategy,
            interval_s=float(cfg.reconcile_interval_seconds),
        )
        self._tasks = [
            asyncio.create_task(self._watcher.run(), name="pod-watch"),
            asyncio.create_task(self._reconciler.run(), name="reconciler"),
        ]
        self._log.info(
            "monitor_started",
            namespace=cfg.namespace,
            vizier=cfg.vizier_name,
            components=len(self._registry),
        )

    async def wait(self) -> None:
        """Block until either loop exits; re-raise its exception if it failed."""
        if not self._tasks:
            return
        done, _ = await asyncio.wait(self._tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            if task.cancelled():
                continue
            exc = task.exception()
            if exc is not None:
                raise exc

    async def stop(self) -> None:
        """Signal both loops to stop and wait briefly for them to exit.

        Safe to call repeatedly, and a no-op if the monitor never started.
        """
        if self._stop_event is None or self._stopped:
            return
        self._stopped = True
        self._stop_event.set()
        self._log.info("monitor_stopping")

        if self._tasks:
            _, pending = await asyncio.wait(self._tasks, timeout=_STOP_GRACE_SECONDS)
            for task in pending:
                self._log.warning("task_stop_timed_out", task=task.get_name())
                task.cancel()
            for task in self._tasks:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                except Exception as exc:
                    self._log.error("task_failed", task=task.get_name(), error=str(exc))

        if self._prober is not None:
            await self._prober.aclose()
        self._log.info("monitor_stopped")
