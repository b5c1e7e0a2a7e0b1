"""Application bootstrap for vizier-monitor.

Startup order: config -> logging -> K8s client -> metrics endpoint -> monitor.
Shutdown stops the monitor and closes the K8s client.

A failed startup step is fatal and exits non-zero. Once running, a
``WatcherError`` from the pod watch (stream unrecoverable after bounded
retries) also exits non-zero so that the process supervisor restarts the
controller from a fresh list.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING, Any

from vizier_monitor.collector.watcher import WatcherError
from vizier_monitor.config import load_config
from vizier_monitor.models.config import VizierMonitorConfig
from vizier_monitor.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from vizier_monitor.monitor import VizierMonitor


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


async def load_k8s_config() -> None:
    """Configure kubernetes-asyncio from in-cluster config or kubeconfig."""
    # Imported lazily: kubernetes-asyncio probes the environment on import.
    import kubernetes_asyncio.config as k8s_config

    try:
        # load_incluster_config() is synchronous in kubernetes-asyncio
        k8s_config.load_incluster_config()  # type: ignore[no-untyped-call]
    except k8s_config.ConfigException:
        await k8s_config.load_kube_config()


class VizierMonitorApp:
    """Application root. Owns the K8s client and the monitor.

    ``stop()`` is safe on an app that was never started or already stopped.
    """

    def __init__(self, config: VizierMonitorConfig | None = None) -> None:
        self.config = config
        self._api_client: Any | None = None
        self._monitor: VizierMonitor | None = None
        self._running = False
        self._log: FilteringBoundLogger | None = None

    @property
    def monitor(self) -> VizierMonitor | None:
        return self._monitor

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        # --- 1. Configuration -------------------------------------------
        if self.config is None:
            try:
                self.config = load_config()
            except ValueError as exc:
                raise _ComponentError("config", exc) from exc

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level, self.config.log.format)
        self._log = get_logger("app")
        self._log.info("vizier-monitor starting", version=_version())

        # --- 3. Kubernetes client ----------------------------------------
        await self._start_k8s_client()

        # --- 4. Metrics endpoint -----------------------------------------
        self._start_metrics()

        # --- 5. Monitor --------------------------------------------------
        await self._start_monitor()

        self._running = True
        self._log.info(
            "vizier-monitor started",
            namespace=self.config.monitor.namespace,
            vizier=self.config.monitor.vizier_name,
        )

    async def _start_k8s_client(self) -> None:
        assert self._log is not None
        self._log.debug("starting k8s client")
        try:
            from kubernetes_asyncio import client as k8s_client

            await load_k8s_config()
            self._api_client = k8s_client.ApiClient()
            self._log.info("k8s client configured")
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    def _start_metrics(self) -> None:
        """Expose Prometheus metrics over HTTP. Non-fatal on failure."""
        assert self._log is not None
        assert self.config is not None
        if not self.config.metrics.enabled:
            self._log.info("metrics endpoint disabled")
            return
        try:
            from prometheus_client import start_http_server

            start_http_server(self.config.metrics.port)
            self._log.info("metrics endpoint started", port=self.config.metrics.port)
        except OSError as exc:
            self._log.warning("metrics endpoint failed to start", port=self.config.metrics.port, error=str(exc))

    async def _start_monitor(self) -> None:
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting monitor")
        try:
            from kubernetes_asyncio import client as k8s_client

            from vizier_monitor.monitor import VizierMonitor

            monitor = VizierMonitor(
                core_api=k8s_client.CoreV1Api(self._api_client),
                custom_api=k8s_client.CustomObjectsApi(self._api_client),
                config=self.config.monitor,
            )
            await monitor.start()
            self._monitor = monitor
        except Exception as exc:
            raise _ComponentError("monitor", exc) from exc

    # ------------------------------------------------------------------
    # Run / shutdown
    # ------------------------------------------------------------------

    async def wait(self) -> None:
        """Block until the monitor's loops exit. Re-raises WatcherError."""
        if self._monitor is not None:
            await self._monitor.wait()

    async def stop(self) -> None:
        """Stop the monitor, then close the K8s client."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("vizier-monitor shutting down")
        self._running = False

        if self._monitor is not None:
            try:
                await self._monitor.stop()
            except Exception as exc:
                log.error("monitor stop raised an error", error=str(exc))

        if self._api_client is not None:
            try:
                await self._api_client.close()
            except Exception as exc:
                log.debug("k8s client close raised (non-fatal)", error=str(exc))
            self._api_client = None

        log.info("vizier-monitor stopped")


def _version() -> str:
    from vizier_monitor import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main(config: VizierMonitorConfig | None = None) -> None:
    """Create the app, register OS signals, run until shutdown or watch failure."""
    app = VizierMonitorApp(config)
    loop = asyncio.get_running_loop()
    shutdown = asyncio.Event()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown.set)

    try:
        await app.start()
        waiter = asyncio.create_task(app.wait(), name="monitor-wait")
        stopper = asyncio.create_task(shutdown.wait(), name="shutdown-wait")
        done, _ = await asyncio.wait({waiter, stopper}, return_when=asyncio.FIRST_COMPLETED)
        stopper.cancel()
        if waiter in done:
            # Propagates WatcherError; a clean return means the loops stopped.
            waiter.result()
        else:
            waiter.cancel()
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical("fatal startup error", component=exc.component, error=str(exc.cause))
        raise SystemExit(1) from exc
    except WatcherError as exc:
        log = get_logger("app")
        log.critical("pod watch failed; exiting for restart", error=str(exc))
        raise SystemExit(1) from exc
    finally:
        await app.stop()
