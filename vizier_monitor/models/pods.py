"""Pod snapshot data structures."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

# Vizier pods carry their logical component name in this label.
COMPONENT_LABEL: str = "name"


class PodPhase(StrEnum):
    """Kubernetes pod lifecycle phase."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: object) -> PodPhase:
        """Return the matching phase, or UNKNOWN for anything unrecognised."""
        try:
            return cls(str(value))
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class PodRecord:
    """Snapshot of one pod at observation time.

    ``port`` is the first declared port of the first declared container,
    which is where Vizier components serve their statusz endpoint.
    """

    name: str
    namespace: str
    component: str | None
    phase: PodPhase
    creation_timestamp: datetime | None = None
    pod_ip: str = ""
    port: int | None = None
    resource_version: str = ""

    @classmethod
    def from_model(cls, pod: Any) -> PodRecord:
        """Build a record from a deserialized ``V1Pod``."""
        meta = pod.metadata
        labels = (meta.labels if meta is not None else None) or {}
        status = pod.status

        port: int | None = None
        spec = pod.spec
        if spec is not None and spec.containers:
            ports = spec.containers[0].ports or []
            if ports:
                port = int(ports[0].container_port)

        return cls(
            name=(meta.name if meta is not None else "") or "",
            namespace=(meta.namespace if meta is not None else "") or "",
            component=labels.get(COMPONENT_LABEL),
            phase=PodPhase.parse(status.phase if status is not None else None),
            creation_timestamp=_coerce_dt(meta.creation_timestamp if meta is not None else None),
            pod_ip=(status.pod_ip if status is not None else "") or "",
            port=port,
            resource_version=(meta.resource_version if meta is not None else "") or "",
        )

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> PodRecord:
        """Build a record from the raw API JSON of a pod."""
        meta = raw.get("metadata")
        if not isinstance(meta, dict):
            meta = {}
        labels = meta.get("labels")
        if not isinstance(labels, dict):
            labels = {}
        status = raw.get("status")
        if not isinstance(status, dict):
            status = {}

        port: int | None = None
        spec = raw.get("spec")
        containers = spec.get("containers") if isinstance(spec, dict) else None
        if isinstance(containers, list) and containers and isinstance(containers[0], dict):
            ports = containers[0].get("ports")
            if isinstance(ports, list) and ports and isinstance(ports[0], dict):
                value = ports[0].get("containerPort")
                if value is not None:
                    port = int(value)

        component = labels.get(COMPONENT_LABEL)
        return cls(
            name=str(meta.get("name", "")),
            namespace=str(meta.get("namespace", "")),
            component=str(component) if component is not None else None,
            phase=PodPhase.parse(status.get("phase")),
            creation_timestamp=_coerce_dt(meta.get("creationTimestamp")),
            pod_ip=str(status.get("podIP", "") or ""),
            port=port,
            resource_version=str(meta.get("resourceVersion", "") or ""),
        )


def _coerce_dt(value: object) -> datetime | None:
    """Return an aware datetime from a datetime or ISO-8601 string."""
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    return None
