"""Base watcher: namespaced list, then a resumable watch.

Wraps kubernetes_asyncio's Watch to provide:
- An initial list that seeds state and the resume cursor (resourceVersion)
- Resumable watches from the last seen resourceVersion
- Every wait on the stream raced against a shared stop event
- Reconnect after a clean server-side stream end or an in-stream ERROR event
- Relist on 410 Gone, bounded to a 10 s budget
- Exponential back-off (1 s - 60 s) on failures to open or read the stream,
  bounded by a retry limit; exhausting it raises :class:`WatcherError`
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Coroutine
from typing import Any

from kubernetes_asyncio import watch
from kubernetes_asyncio.client import V1Status
from kubernetes_asyncio.client.exceptions import ApiException

from vizier_monitor.observability.logging import get_logger
from vizier_monitor.observability.metrics import (
    watcher_backoff_seconds,
    watcher_events_total,
    watcher_reconnects_total,
    watcher_relistings_total,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_BACKOFF_MIN_S: float = 1.0
_BACKOFF_MAX_S: float = 60.0
_BACKOFF_MULTIPLIER: float = 2.0

_DEFAULT_MAX_RETRIES: int = 5
_RELIST_BUDGET_S: float = 10.0

# Server-side watch timeout; the stream ends cleanly and is reopened.
_WATCH_TIMEOUT_S: int = 300
_RECONNECT_DELAY_S: float = 1.0

_STREAM_END = object()


class WatcherError(Exception):
    """Raised when a watcher cannot sync or cannot recover its stream."""


class BaseWatcher(ABC):
    """Async base class for namespaced list-watch ingestion.

    Subclasses implement :meth:`_list_func` (which namespaced list call to
    use), :meth:`_decode` (turn an API object into a domain item, or None
    for objects the watcher does not care about) and :meth:`_handle_event`.

    Lifecycle::

        stop = asyncio.Event()
        watcher = MyWatcher(v1_api, "pl", stop)
        await watcher.initial_sync()   # raises WatcherError on failure
        task = asyncio.create_task(watcher.run())
        # ...
        stop.set()                      # run() returns at the next wait
    """

    def __init__(
        self,
        api: Any,
        namespace: str,
        stop_event: asyncio.Event,
        name: str = "base",
        max_retries: int = _DEFAULT_MAX_RETRIES,
    ) -> None:
        """Initialise the watcher.

        Args:
            api: A kubernetes_asyncio API instance (e.g. CoreV1Api).
            namespace: Namespace to list and watch.
            stop_event: Shared cancellation signal.
            name: Short identifier used in log/metric labels.
            max_retries: Consecutive failures tolerated before giving up.
        """
        self._api = api
        self._namespace = namespace
        self._stop = stop_event
        self._name = name
        self._max_retries = max_retries
        self._log = get_logger(f"watcher.{name}")

        self._resource_version: str = ""
        self._consecutive_failures: int = 0
        self._backoff_s: float = _BACKOFF_MIN_S
        self._stream_opened: bool = False

    @property
    def resource_version(self) -> str:
        """The resume cursor: last resourceVersion seen."""
        return self._resource_version

    # ------------------------------------------------------------------
    # Abstract interface for subclasses
    # ------------------------------------------------------------------

    @abstractmethod
    def _list_func(self) -> Callable[..., Coroutine[Any, Any, Any]]:
        """Return the namespaced API list function, e.g. ``list_namespaced_pod``."""

    @abstractmethod
    def _decode(self, obj: Any, raw: dict[str, Any]) -> Any | None:
        """Return the domain item for an API object, or None to skip it."""

    @abstractmethod
    async def _handle_event(self, event_type: str, item: Any) -> None:
        """Process one decoded item. ``event_type`` is ADDED, MODIFIED or DELETED."""

    # ------------------------------------------------------------------
    # Initial sync
    # ------------------------------------------------------------------

    async def initial_sync(self) -> None:
        """List the namespace once, seed state and set the resume cursor.

        Raises:
            WatcherError: the list call failed or returned an unusable shape.
        """
        await self._sync()
        self._log.info(
            "initial_sync_complete",
            watcher=self._name,
            namespace=self._namespace,
            resource_version=self._resource_version,
        )

    async def _sync(self) -> None:
        try:
            result = await self._list_func()(self._namespace)
        except Exception as exc:
            raise WatcherError(f"list of {self._name}s in {self._namespace!r} failed: {exc}") from exc

        items, rv = _list_items(result, self._name)
        decoded = []
        for entry in items:
            item = self._decode(entry, entry if isinstance(entry, dict) else {})
            if item is None:
                raise WatcherError(f"could not get {self._name} list")
            decoded.append(item)

        self._resource_version = rv
        for item in decoded:
            await self._handle_event("ADDED", item)

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Consume the watch stream until the stop event is set.

        Raises:
            WatcherError: the stream could not be re-established within
                ``max_retries`` consecutive attempts.
        """
        self._log.info("watcher_started", watcher=self._name, resource_version=self._resource_version)
        while not self._stop.is_set():
            try:
                await self._run_watch()
            except ApiException as exc:
                await self._handle_api_exception(exc)
            except Exception as exc:
                await self._handle_loop_exception(exc)
        self._log.info("watcher_stopped", watcher=self._name)

    async def _run_watch(self) -> None:
        """Open one watch stream and iterate until it ends, raises or stop is set.

        An ERROR event on an open stream surfaces from kubernetes_asyncio as an
        ApiException. Those end the stream and reconnect from the cursor
        without counting a failure; only 410 and failures to open the stream
        propagate.
        """
        kwargs: dict[str, Any] = {
            "allow_watch_bookmarks": True,
            "timeout_seconds": _WATCH_TIMEOUT_S,
        }
        if self._resource_version:
            kwargs["resource_version"] = self._resource_version

        self._stream_opened = False
        reason = "stream_end"
        w = watch.Watch()
        try:
            stream = w.stream(self._opener(self._list_func()), self._namespace, **kwargs)
            while True:
                try:
                    raw_event = await self._next_event(stream)
                except ApiException as exc:
                    if not self._stream_opened or exc.status == 410:
                        raise
                    self._log.debug(
                        "watch_error_event",
                        watcher=self._name,
                        status=exc.status,
                        reason=exc.reason,
                    )
                    reason = "error_event"
                    break
                if raw_event is None:
                    return
                if raw_event is _STREAM_END:
                    break
                self._reset_backoff()
                await self._process(raw_event)

            # Stream ended without a counted failure; reopen from the cursor.
            watcher_reconnects_total.labels(watcher=self._name, reason=reason).inc()
            self._log.debug(
                "watch_stream_ended",
                watcher=self._name,
                reason=reason,
                resource_version=self._resource_version,
            )
            await self._sleep(_RECONNECT_DELAY_S)
        finally:
            await w.close()

    def _opener(self, list_func: Callable[..., Coroutine[Any, Any, Any]]) -> Callable[..., Coroutine[Any, Any, Any]]:
        """Wrap ``list_func`` so a successful watch request marks the stream open.

        ``functools.wraps`` keeps the docstring Watch reads the return type from.
        """

        @functools.wraps(list_func)
        async def open_stream(*args: Any, **kwargs: Any) -> Any:
            resp = await list_func(*args, **kwargs)
            self._stream_opened = True
            return resp

        return open_stream

    async def _next_event(self, stream: AsyncIterator[Any]) -> Any:
        """Wait for the next event, racing the stop event.

        Returns the event dict, ``_STREAM_END`` when the stream is exhausted,
        or None when the stop event fired first.
        """
        next_task = asyncio.ensure_future(anext(stream, _STREAM_END))
        stop_task = asyncio.ensure_future(self._stop.wait())
        try:
            await asyncio.wait({next_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (next_task, stop_task):
                if not task.done():
                    task.cancel()

        if self._stop.is_set():
            if next_task.done() and not next_task.cancelled():
                # Consume an error that raced the stop.
                next_task.exception()
            self._log.info("received_stop", watcher=self._name)
            return None
        return next_task.result()

    async def _process(self, raw_event: dict[str, Any]) -> None:
        event_type: str = raw_event.get("type", "")
        obj = raw_event.get("object")
        raw = raw_event.get("raw_object", {})
        if not isinstance(raw, dict):
            raw = {}

        if event_type == "BOOKMARK":
            rv = _extract_rv(obj, raw)
            if rv:
                self._resource_version = rv
            return

        if event_type == "ERROR" or _is_status(obj, raw):
            code = _status_code(obj, raw)
            if code == 410:
                raise ApiException(status=410, reason="Gone")
            self._log.debug("watch_status_ignored", watcher=self._name, code=code)
            return

        item = self._decode(obj, raw)
        if item is None:
            return

        rv = _extract_rv(obj, raw)
        if rv:
            self._resource_version = rv

        watcher_events_total.labels(watcher=self._name, event_type=event_type).inc()
        await self._handle_event(event_type, item)

    # ------------------------------------------------------------------
    # Failure handling
    # ------------------------------------------------------------------

    async def _handle_api_exception(self, exc: ApiException) -> None:
        """Route an ApiException to relist or back-off."""
        status = exc.status
        if status == 410:
            # Gone: cursor too old, start over from a fresh list
            self._log.warning("watch_gone_410", watcher=self._name)
            watcher_reconnects_total.labels(watcher=self._name, reason="410").inc()
            try:
                await self._relist(reason="410")
            except Exception as relist_exc:
                self._log.error("relist_failed", watcher=self._name, error=str(relist_exc))
                await self._record_failure("relist_failed")
            return

        self._log.warning(
            "watch_api_error",
            watcher=self._name,
            status=status,
            reason=exc.reason,
            consecutive_failures=self._consecutive_failures + 1,
        )
        watcher_reconnects_total.labels(watcher=self._name, reason=str(status)).inc()
        await self._record_failure(str(status))

    async def _handle_loop_exception(self, exc: Exception) -> None:
        """Handle unexpected exceptions from opening or reading the stream."""
        self._log.error(
            "watch_unexpected_error",
            watcher=self._name,
            error=str(exc),
            consecutive_failures=self._consecutive_failures + 1,
            exc_info=True,
        )
        watcher_reconnects_total.labels(watcher=self._name, reason="unexpected").inc()
        await self._record_failure("unexpected")

    async def _record_failure(self, reason: str) -> None:
        """Count a failure; raise once the retry limit is exceeded, else back off."""
        self._consecutive_failures += 1
        if self._consecutive_failures > self._max_retries:
            raise WatcherError(
                f"{self._name} watch could not be re-established after "
                f"{self._max_retries} retries (last failure: {reason})"
            )
        await self._backoff(reason)

    async def _backoff(self, reason: str) -> None:
        """Sleep for the current back-off duration, then increase it."""
        delay = min(self._backoff_s, _BACKOFF_MAX_S)
        self._log.debug("watcher_backoff", watcher=self._name, reason=reason, delay_s=delay)
        watcher_backoff_seconds.labels(watcher=self._name).observe(delay)
        await self._sleep(delay)
        self._backoff_s = min(self._backoff_s * _BACKOFF_MULTIPLIER, _BACKOFF_MAX_S)

    def _reset_backoff(self) -> None:
        self._backoff_s = _BACKOFF_MIN_S
        self._consecutive_failures = 0

    async def _sleep(self, delay: float) -> None:
        """Sleep up to ``delay`` seconds, waking early if stop is set."""
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._stop.wait(), timeout=delay)

    # ------------------------------------------------------------------
    # Relist
    # ------------------------------------------------------------------

    async def _relist(self, reason: str = "unknown") -> None:
        """Re-seed state from a fresh list and take its resourceVersion."""
        watcher_relistings_total.labels(watcher=self._name).inc()
        self._log.info("relist_start", watcher=self._name, reason=reason)
        self._resource_version = ""
        async with asyncio.timeout(_RELIST_BUDGET_S):
            await self._sync()
        self._reset_backoff()
        self._log.info("relist_complete", watcher=self._name, resource_version=self._resource_version)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _list_items(result: Any, kind: str) -> tuple[list[Any], str]:
    """Return (items, resourceVersion) from a typed list or a raw list dict."""
    if isinstance(result, dict):
        items = result.get("items")
        if not isinstance(items, list):
            raise WatcherError(f"could not get {kind} list")
        metadata = result.get("metadata")
        rv = metadata.get("resourceVersion", "") if isinstance(metadata, dict) else ""
        return items, str(rv or "")

    items = getattr(result, "items", None)
    if not isinstance(items, list):
        raise WatcherError(f"could not get {kind} list")
    metadata = getattr(result, "metadata", None)
    rv = getattr(metadata, "resource_version", "") if metadata is not None else ""
    return items, str(rv or "")


def _is_status(obj: Any, raw: dict[str, Any]) -> bool:
    return isinstance(obj, V1Status) or raw.get("kind") == "Status"


def _status_code(obj: Any, raw: dict[str, Any]) -> int | None:
    code = getattr(obj, "code", None) if isinstance(obj, V1Status) else None
    if code is None:
        code = raw.get("code")
    try:
        return int(code) if code is not None else None
    except (TypeError, ValueError):
        return None


def _extract_rv(obj: Any, raw: dict[str, Any]) -> str:
    """Extract resourceVersion from a watch event's deserialized object or raw dict."""
    if obj is not None and not isinstance(obj, dict):
        metadata = getattr(obj, "metadata", None)
        rv = getattr(metadata, "resource_version", None) if metadata is not None else None
        if rv:
            return str(rv)
    metadata = raw.get("metadata")
    if isinstance(metadata, dict):
        rv = metadata.get("resourceVersion", "")
        if rv:
            return str(rv)
    return ""
