"""Configuration data structures, populated by :func:`vizier_monitor.config.load_config`."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class MonitorConfig:
    """Settings for the Vizier health monitor."""

    namespace: str = "pl"
    vizier_name: str = "pixie"
    reconcile_interval_seconds: int = 20
    probe_timeout_seconds: int = 5
    cloud_connector_label: str = "vizier-cloud-connector"
    forget_deleted_pods: bool = False
    watch_max_retries: int = 5


@dataclass(frozen=True)
class LogConfig:
    level: str = "info"
    format: str = "json"


@dataclass(frozen=True)
class MetricsConfig:
    enabled: bool = True
    port: int = 9090


@dataclass(frozen=True)
class VizierMonitorConfig:
    """Top-level configuration."""

    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    log: LogConfig = field(default_factory=LogConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
