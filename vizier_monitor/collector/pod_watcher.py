"""Pod watcher.

Lists and watches the pods of one Vizier namespace and feeds every observed
pod into the :class:`~vizier_monitor.cache.pod_registry.PodRegistry`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any

from kubernetes_asyncio.client import V1Pod

from vizier_monitor.cache.pod_registry import PodRegistry
from vizier_monitor.collector.watcher import BaseWatcher
from vizier_monitor.models.pods import PodRecord


class PodWatcher(BaseWatcher):
    """Keeps a :class:`PodRegistry` current for one namespace.

    DELETED events are applied like any other observation, so a component
    keeps its last-known pod after deletion. With ``forget_deleted=True``
    the deleted pod's entry is dropped instead, which makes the component
    read as absent until a replacement pod appears.

    Usage::

        v1 = kubernetes_asyncio.client.CoreV1Api()
        watcher = PodWatcher(v1, "pl", registry, stop_event)
        await watcher.initial_sync()
        task = asyncio.create_task(watcher.run())
    """

    def __init__(
        self,
        api: Any,
        namespace: str,
        registry: PodRegistry,
        stop_event: asyncio.Event,
        forget_deleted: bool = False,
        max_retries: int = 5,
    ) -> None:
        super().__init__(api, namespace, stop_event, name="pod", max_retries=max_retries)
        self._registry = registry
        self._forget_deleted = forget_deleted

    def _list_func(self) -> Callable[..., Coroutine[Any, Any, Any]]:
        return self._api.list_namespaced_pod  # type: ignore[no-any-return]

    def _decode(self, obj: Any, raw: dict[str, Any]) -> PodRecord | None:
        if isinstance(obj, V1Pod):
            return PodRecord.from_model(obj)
        # List items carry no kind; watch raw objects do.
        if raw.get("kind", "Pod") == "Pod" and isinstance(raw.get("metadata"), dict):
            return PodRecord.from_dict(raw)
        return None

    async def _handle_event(self, event_type: str, item: PodRecord) -> None:
        if event_type == "DELETED" and self._forget_deleted:
            self._registry.forget(item)
            return
        self._registry.handle(item)
