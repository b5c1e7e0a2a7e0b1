"""vizier-monitor command-line interface.

Commands:
    vizier-monitor run [--namespace NS] [--name NAME]    Run the controller.
    vizier-monitor check [--namespace NS] [--name NAME]  Print the current phase once.
    vizier-monitor version                               Print version and exit.

Options not given on the command line fall back to the ``VIZIER_MONITOR_*``
environment variables.
"""

from __future__ import annotations

import asyncio
import dataclasses
from typing import Any

import click

from vizier_monitor import __version__
from vizier_monitor.config import load_config
from vizier_monitor.models.config import MonitorConfig, VizierMonitorConfig
from vizier_monitor.models.status import AggregatePhase, StatusResult

_PHASE_COLORS: dict[str, str] = {
    AggregatePhase.HEALTHY: "green",
    AggregatePhase.UPDATING: "yellow",
    AggregatePhase.UNHEALTHY: "red",
    AggregatePhase.DISCONNECTED: "bright_red",
}


def _styled_phase(phase: str) -> str:
    return click.style(phase, fg=_PHASE_COLORS.get(phase, "white"), bold=True)


def _load(namespace: str | None, name: str | None, log_level: str | None = None) -> VizierMonitorConfig:
    """Load env config and apply command-line overrides."""
    try:
        config = load_config()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    overrides: dict[str, Any] = {}
    if namespace:
        overrides["namespace"] = namespace
    if name:
        overrides["vizier_name"] = name
    if overrides:
        config = dataclasses.replace(config, monitor=dataclasses.replace(config.monitor, **overrides))
    if log_level:
        config = dataclasses.replace(config, log=dataclasses.replace(config.log, level=log_level.lower()))
    return config


async def _evaluate(core_api: Any, config: MonitorConfig, http_client: Any = None) -> StatusResult:
    """List the namespace once and evaluate the status without writing it."""
    from vizier_monitor.cache.pod_registry import PodRegistry
    from vizier_monitor.collector.pod_watcher import PodWatcher
    from vizier_monitor.health.prober import EndpointProber, build_http_client
    from vizier_monitor.health.status import CloudConnectorStrategy

    registry = PodRegistry()
    watcher = PodWatcher(core_api, config.namespace, registry, asyncio.Event())
    await watcher.initial_sync()

    prober = EndpointProber(http_client or build_http_client(float(config.probe_timeout_seconds)))
    try:
        strategy = CloudConnectorStrategy(config.cloud_connector_label)
        return await strategy.evaluate(registry.snapshot(), prober)
    finally:
        await prober.aclose()


async def _collect_status(config: MonitorConfig) -> StatusResult:
    from kubernetes_asyncio import client as k8s_client

    from vizier_monitor.app import load_k8s_config

    await load_k8s_config()
    async with k8s_client.ApiClient() as api_client:
        return await _evaluate(k8s_client.CoreV1Api(api_client), config)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
def cli() -> None:
    """vizier-monitor - Vizier health reconciliation controller."""


# ---------------------------------------------------------------------------
# vizier-monitor version
# ---------------------------------------------------------------------------


@cli.command("version")
def version_cmd() -> None:
    """Print the vizier-monitor version and exit."""
    click.echo(f"vizier-monitor {__version__}")


# ---------------------------------------------------------------------------
# vizier-monitor run
# ---------------------------------------------------------------------------


@cli.command("run")
@click.option("--namespace", "-n", default=None, help="Vizier namespace.")
@click.option("--name", default=None, help="Name of the Vizier resource.")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Log level.",
)
def run_cmd(namespace: str | None, name: str | None, log_level: str | None) -> None:
    """Run the monitor until SIGTERM/SIGINT."""
    from vizier_monitor.app import main

    config = _load(namespace, name, log_level)
    asyncio.run(main(config))


# ---------------------------------------------------------------------------
# vizier-monitor check
# ---------------------------------------------------------------------------


@cli.command("check")
@click.option("--namespace", "-n", default=None, help="Vizier namespace.")
@click.option("--name", default=None, help="Name of the Vizier resource.")
def check_cmd(namespace: str | None, name: str | None) -> None:
    """Evaluate the Vizier phase once and print it. Writes nothing."""
    from vizier_monitor.collector.watcher import WatcherError

    config = _load(namespace, name)
    try:
        result = asyncio.run(_collect_status(config.monitor))
    except WatcherError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(f"Vizier:    {config.monitor.vizier_name}")
    click.echo(f"Namespace: {config.monitor.namespace}")
    click.echo(f"Phase:     {_styled_phase(result.phase.value)}")
    if result.reason:
        click.echo(f"Reason:    {result.reason}")
    if result.message and result.message != result.reason:
        click.echo(f"Message:   {result.message}")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    cli()
