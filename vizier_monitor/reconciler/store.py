"""Vizier custom resource access.

Reads and writes one ``viziers.px.dev/v1alpha1`` object through
kubernetes_asyncio's CustomObjectsApi. No optimistic-concurrency retry is
done here: a conflicting writer makes ``update`` fail and the next
reconciliation tick tries again.
"""

from __future__ import annotations

from typing import Any

from vizier_monitor.models.status import StatusResult

VIZIER_GROUP: str = "px.dev"
VIZIER_VERSION: str = "v1alpha1"
VIZIER_PLURAL: str = "viziers"


class VizierStore:
    """Get/update access to a single namespaced Vizier resource."""

    def __init__(self, api: Any, namespace: str, name: str) -> None:
        """
        Args:
            api: A ``kubernetes_asyncio.client.CustomObjectsApi`` instance.
            namespace: Namespace of the Vizier resource.
            name: Name of the Vizier resource.
        """
        self._api = api
        self.namespace = namespace
        self.name = name

    async def get(self) -> dict[str, Any]:
        obj = await self._api.get_namespaced_custom_object(
            VIZIER_GROUP,
            VIZIER_VERSION,
            self.namespace,
            VIZIER_PLURAL,
            self.name,
        )
        return obj  # type: ignore[no-any-return]

    async def update(self, obj: dict[str, Any]) -> None:
        """Write ``obj``'s status through the status subresource."""
        await self._api.replace_namespaced_custom_object_status(
            VIZIER_GROUP,
            VIZIER_VERSION,
            self.namespace,
            VIZIER_PLURAL,
            self.name,
            obj,
        )


def apply_status(obj: dict[str, Any], result: StatusResult) -> dict[str, Any]:
    """Set phase, reason and message on a Vizier object dict in place."""
    status = obj.get("status")
    if not isinstance(status, dict):
        status = {}
        obj["status"] = status
    status["vizierPhase"] = result.phase.value
    status["vizierReason"] = result.reason
    status["message"] = result.message
    return obj
