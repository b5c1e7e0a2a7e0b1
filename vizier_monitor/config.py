"""Environment-variable configuration loader.

Every setting is read from a ``VIZIER_MONITOR_*`` variable. Integer settings
are clamped to their bounds; invalid enumerations and empty names raise
``ValueError`` so a misconfigured deployment fails at startup.
"""

from __future__ import annotations

import os

from vizier_monitor.models.config import LogConfig, MetricsConfig, MonitorConfig, VizierMonitorConfig

_PREFIX = "VIZIER_MONITOR_"

_LOG_LEVELS: frozenset[str] = frozenset({"debug", "info", "warning", "error"})
_LOG_FORMATS: frozenset[str] = frozenset({"json", "console"})
_TRUTHY: frozenset[str] = frozenset({"1", "true", "yes", "on"})


def _env(name: str, default: str) -> str:
    return os.environ.get(_PREFIX + name, default)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(_PREFIX + name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


def _env_int(name: str, default: int, minimum: int, maximum: int) -> int:
    """Read an integer, falling back to ``default`` when unparsable, then clamp."""
    raw = os.environ.get(_PREFIX + name)
    value = default
    if raw is not None:
        try:
            value = int(raw.strip())
        except ValueError:
            value = default
    return max(minimum, min(maximum, value))


def _env_name(name: str, default: str) -> str:
    value = _env(name, default).strip()
    if not value:
        raise ValueError(f"{_PREFIX}{name} must not be empty")
    return value


def load_config() -> VizierMonitorConfig:
    """Build a :class:`VizierMonitorConfig` from the process environment."""
    level = _env("LOG_LEVEL", "info").strip().lower()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level!r}")

    fmt = _env("LOG_FORMAT", "json").strip().lower()
    if fmt not in _LOG_FORMATS:
        raise ValueError(f"Invalid log format: {fmt!r}")

    monitor = MonitorConfig(
        namespace=_env_name("NAMESPACE", "pl"),
        vizier_name=_env_name("VIZIER_NAME", "pixie"),
        reconcile_interval_seconds=_env_int("RECONCILE_INTERVAL", 20, 1, 3600),
        probe_timeout_seconds=_env_int("PROBE_TIMEOUT", 5, 1, 60),
        cloud_connector_label=_env_name("CLOUD_CONNECTOR_LABEL", "vizier-cloud-connector"),
        forget_deleted_pods=_env_bool("FORGET_DELETED_PODS", False),
        watch_max_retries=_env_int("WATCH_MAX_RETRIES", 5, 1, 20),
    )

    return VizierMonitorConfig(
        monitor=monitor,
        log=LogConfig(level=level, format=fmt),
        metrics=MetricsConfig(
            enabled=_env_bool("METRICS_ENABLED", True),
            port=_env_int("METRICS_PORT", 9090, 1024, 65535),
        ),
    )
