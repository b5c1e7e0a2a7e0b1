"""Aggregate status evaluation.

A :class:`StatusStrategy` turns a registry snapshot into a
:class:`~vizier_monitor.models.status.StatusResult`. The default
:class:`CloudConnectorStrategy` uses the cloud connector as a proxy for the
whole instance: it only reaches a healthy running state once the components
it depends on are up.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

from vizier_monitor.health.prober import ProbeResult
from vizier_monitor.models.pods import PodPhase, PodRecord
from vizier_monitor.models.status import AggregatePhase, StatusResult

CLOUD_CONNECTOR_NAME: str = "vizier-cloud-connector"


class Prober(Protocol):
    async def probe(self, record: PodRecord) -> ProbeResult: ...


class StatusStrategy(Protocol):
    """Computes the aggregate phase for a registry snapshot.

    Implementations plug in through the ``strategy`` argument of
    :class:`~vizier_monitor.reconciler.scheduler.Reconciler`, for example one
    that also inspects the other component pods.
    """

    async def evaluate(self, pods: Mapping[str, PodRecord], prober: Prober) -> StatusResult: ...


class CloudConnectorStrategy:
    """Derives the Vizier phase from the cloud connector pod alone.

    absent -> Disconnected, Pending -> Updating, any other non-Running
    phase -> Unhealthy, Running -> statusz decides Healthy/Unhealthy.
    """

    def __init__(self, component: str = CLOUD_CONNECTOR_NAME) -> None:
        self._component = component

    async def evaluate(self, pods: Mapping[str, PodRecord], prober: Prober) -> StatusResult:
        pod = pods.get(self._component)
        if pod is None:
            return StatusResult(AggregatePhase.DISCONNECTED)

        if pod.phase == PodPhase.PENDING:
            return StatusResult(AggregatePhase.UPDATING)

        if pod.phase != PodPhase.RUNNING:
            return StatusResult(AggregatePhase.UNHEALTHY)

        result = await prober.probe(pod)
        if not result.healthy:
            return StatusResult(AggregatePhase.UNHEALTHY, result.diagnostic)

        return StatusResult(AggregatePhase.HEALTHY)


async def reconcile_status(
    pods: Mapping[str, PodRecord],
    prober: Prober,
    component: str = CLOUD_CONNECTOR_NAME,
) -> StatusResult:
    """Evaluate ``pods`` with the default cloud-connector strategy."""
    return await CloudConnectorStrategy(component).evaluate(pods, prober)
