"""Aggregate Vizier status types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class AggregatePhase(StrEnum):
    """Instance-wide health phase written to ``status.vizierPhase``."""

    DISCONNECTED = "Disconnected"
    UPDATING = "Updating"
    UNHEALTHY = "Unhealthy"
    HEALTHY = "Healthy"


# Reasons reported by the cloud connector's statusz endpoint.
_REASON_MESSAGES: dict[str, str] = {
    "CloudConnectorFailedToConnect": (
        "Cloud connector failed to connect to Pixie Cloud. Please check your cloud address."
    ),
    "CloudConnectorInvalidDeployKey": (
        "Invalid deploy key specified. Please verify that the deploy key was created by the correct user."
    ),
    "CloudConnectorBasicQueryFailed": "Unable to run basic healthcheck query on cluster.",
    "CloudConnectorRegistrationFailed": "Cloud connector failed to register the Vizier with Pixie Cloud.",
    "CloudConnectorPodFailed": "Cloud connector pod failed to start.",
}


def message_for_reason(reason: str) -> str:
    """Return the human-readable message for a status reason.

    Unknown reasons are returned unchanged so raw diagnostics stay visible.
    """
    if not reason:
        return ""
    return _REASON_MESSAGES.get(reason, reason)


@dataclass(frozen=True)
class StatusResult:
    """Outcome of one status evaluation."""

    phase: AggregatePhase
    reason: str = ""

    @property
    def message(self) -> str:
        return message_for_reason(self.reason)
