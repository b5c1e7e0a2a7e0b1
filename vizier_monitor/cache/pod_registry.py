"""Per-component pod registry.

Maps a component label (e.g. ``vizier-cloud-connector``) to the most
recently observed pod for that component. Vizier components are not
replicated, so a single pod per label is authoritative.

Replacement rule
----------------
An incoming record replaces the stored record for its label unless it
belongs to a *different* pod that was created strictly *earlier* than the
stored one. Status updates for the stored pod always apply; a stale pod
from before a rollout never displaces its successor.

The watch task writes and the reconciler reads concurrently, so every
access goes through one lock.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from datetime import UTC, datetime
from types import MappingProxyType

from vizier_monitor.models.pods import PodRecord
from vizier_monitor.observability.logging import get_logger
from vizier_monitor.observability.metrics import registry_components

# Records without a creation timestamp sort before every real pod.
_EPOCH_MIN = datetime.min.replace(tzinfo=UTC)


class PodRegistry:
    """Thread-safe map of component label to current :class:`PodRecord`."""

    def __init__(self) -> None:
        self._records: dict[str, PodRecord] = {}
        self._lock = threading.Lock()
        self._log = get_logger("pod_registry")

    def handle(self, record: PodRecord) -> None:
        """Apply ``record`` according to the replacement rule."""
        component = record.component
        if not component:
            return

        with self._lock:
            stored = self._records.get(component)
            if stored is not None and _is_stale(record, stored):
                self._log.debug(
                    "stale_pod_ignored",
                    component=component,
                    pod=record.name,
                    current_pod=stored.name,
                )
                return
            self._records[component] = record
            registry_components.set(len(self._records))

    def forget(self, record: PodRecord) -> bool:
        """Drop the entry for ``record``'s component if it is the same pod.

        Returns True when an entry was removed.
        """
        component = record.component
        if not component:
            return False

        with self._lock:
            stored = self._records.get(component)
            if stored is None or stored.name != record.name:
                return False
            del self._records[component]
            registry_components.set(len(self._records))
        self._log.info("pod_forgotten", component=component, pod=record.name)
        return True

    def get(self, component: str) -> PodRecord | None:
        with self._lock:
            return self._records.get(component)

    def snapshot(self) -> Mapping[str, PodRecord]:
        """Return a read-only copy of the current records."""
        with self._lock:
            return MappingProxyType(dict(self._records))

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


def _is_stale(incoming: PodRecord, stored: PodRecord) -> bool:
    """True if ``incoming`` is a different, older pod than ``stored``."""
    if incoming.name == stored.name:
        return False
    incoming_ts = incoming.creation_timestamp or _EPOCH_MIN
    stored_ts = stored.creation_timestamp or _EPOCH_MIN
    return incoming_ts < stored_ts
