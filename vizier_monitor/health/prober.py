"""Statusz endpoint prober.

Pings a pod's ``/statusz`` endpoint over HTTPS. Vizier pods serve
self-signed certificates on the cluster network, so verification is off.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from vizier_monitor.models.pods import PodRecord
from vizier_monitor.observability.metrics import probes_total

_logger = structlog.get_logger(component="prober")

STATUSZ_PATH: str = "/statusz"
_DIAGNOSTIC_MAX_BYTES: int = 4_096


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one statusz probe.

    ``healthy=False`` with an empty diagnostic means the state could not be
    determined (no address, network error), not an explicit failure report.
    """

    healthy: bool
    diagnostic: str = ""


def build_http_client(timeout_s: float) -> httpx.AsyncClient:
    """Return an HTTPS client for pod-local endpoints with a bounded timeout."""
    return httpx.AsyncClient(
        verify=False,
        timeout=httpx.Timeout(timeout_s),
        limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
    )


def statusz_url(record: PodRecord) -> str:
    host = record.pod_ip
    if ":" in host:
        host = f"[{host}]"
    return f"https://{host}:{record.port}{STATUSZ_PATH}"


class EndpointProber:
    """Probes pod statusz endpoints with a shared :class:`httpx.AsyncClient`.

    The caller owns the client lifecycle unless it calls :meth:`aclose`.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def probe(self, record: PodRecord) -> ProbeResult:
        """GET the pod's statusz endpoint and classify the response.

        200 is healthy. Any other status is unhealthy, with the trimmed
        response body as the diagnostic. Network errors are logged and
        reported as unhealthy with no diagnostic. Never raises.
        """
        if not record.pod_ip or record.port is None:
            _logger.info("statusz_probe_skipped", pod=record.name, pod_ip=record.pod_ip, port=record.port)
            probes_total.labels(result="no_address").inc()
            return ProbeResult(healthy=False)

        url = statusz_url(record)
        try:
            async with self._client.stream("GET", url) as response:
                if response.status_code == httpx.codes.OK:
                    probes_total.labels(result="healthy").inc()
                    return ProbeResult(healthy=True)
                body = await _read_capped(response)
        except httpx.HTTPError as exc:
            _logger.info("statusz_probe_failed", pod=record.name, url=url, error=str(exc))
            probes_total.labels(result="error").inc()
            return ProbeResult(healthy=False)

        probes_total.labels(result="unhealthy").inc()
        diagnostic = body.decode("utf-8", errors="replace").strip()
        _logger.debug(
            "statusz_unhealthy",
            pod=record.name,
            status=response.status_code,
            diagnostic=diagnostic,
        )
        return ProbeResult(healthy=False, diagnostic=diagnostic)

    async def aclose(self) -> None:
        await self._client.aclose()


async def _read_capped(response: httpx.Response) -> bytes:
    """Read at most ``_DIAGNOSTIC_MAX_BYTES`` of the response body."""
    chunks: list[bytes] = []
    size = 0
    async for chunk in response.aiter_bytes():
        chunks.append(chunk)
        size += len(chunk)
        if size >= _DIAGNOSTIC_MAX_BYTES:
            break
    return b"".join(chunks)[:_DIAGNOSTIC_MAX_BYTES]
