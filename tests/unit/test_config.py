"""Tests for vizier_monitor.config - environment variable loading and validation.

Covers:
  - Default values when no VIZIER_MONITOR_* env vars are set
  - Each config field read from its corresponding VIZIER_MONITOR_* env var
  - Numeric clamping (min/max bounds for int fields)
  - Invalid values raise ValueError for validated fields
  - Boolean parsing for various truthy/falsy strings
"""

from __future__ import annotations

import os

import pytest

from vizier_monitor.config import load_config
from vizier_monitor.models.config import VizierMonitorConfig


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("VIZIER_MONITOR_"):
            monkeypatch.delenv(key)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


class TestConfigDefaults:
    def test_returns_config_type(self) -> None:
        assert isinstance(load_config(), VizierMonitorConfig)

    def test_monitor_defaults(self) -> None:
        monitor = load_config().monitor
        assert monitor.namespace == "pl"
        assert monitor.vizier_name == "pixie"
        assert monitor.reconcile_interval_seconds == 20
        assert monitor.probe_timeout_seconds == 5
        assert monitor.cloud_connector_label == "vizier-cloud-connector"
        assert monitor.forget_deleted_pods is False
        assert monitor.watch_max_retries == 5

    def test_log_defaults(self) -> None:
        config = load_config()
        assert config.log.level == "info"
        assert config.log.format == "json"

    def test_metrics_defaults(self) -> None:
        config = load_config()
        assert config.metrics.enabled is True
        assert config.metrics.port == 9090


# ---------------------------------------------------------------------------
# Custom values
# ---------------------------------------------------------------------------


class TestConfigCustomValues:
    def test_namespace_and_name(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIZIER_MONITOR_NAMESPACE", "pixie-system")
        monkeypatch.setenv("VIZIER_MONITOR_VIZIER_NAME", "vz")
        monitor = load_config().monitor
        assert monitor.namespace == "pixie-system"
        assert monitor.vizier_name == "vz"

    def test_intervals(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIZIER_MONITOR_RECONCILE_INTERVAL", "45")
        monkeypatch.setenv("VIZIER_MONITOR_PROBE_TIMEOUT", "10")
        monkeypatch.setenv("VIZIER_MONITOR_WATCH_MAX_RETRIES", "8")
        monitor = load_config().monitor
        assert monitor.reconcile_interval_seconds == 45
        assert monitor.probe_timeout_seconds == 10
        assert monitor.watch_max_retries == 8

    def test_cloud_connector_label(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIZIER_MONITOR_CLOUD_CONNECTOR_LABEL", "my-connector")
        assert load_config().monitor.cloud_connector_label == "my-connector"

    def test_log_settings_are_lowercased(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIZIER_MONITOR_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("VIZIER_MONITOR_LOG_FORMAT", "Console")
        config = load_config()
        assert config.log.level == "debug"
        assert config.log.format == "console"

    def test_metrics_port(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIZIER_MONITOR_METRICS_PORT", "9102")
        assert load_config().metrics.port == 9102


# ---------------------------------------------------------------------------
# Clamping
# ---------------------------------------------------------------------------


class TestConfigClamping:
    @pytest.mark.parametrize(
        ("var", "raw", "attr", "expected"),
        [
            ("RECONCILE_INTERVAL", "0", "reconcile_interval_seconds", 1),
            ("RECONCILE_INTERVAL", "99999", "reconcile_interval_seconds", 3600),
            ("PROBE_TIMEOUT", "-3", "probe_timeout_seconds", 1),
            ("PROBE_TIMEOUT", "600", "probe_timeout_seconds", 60),
            ("WATCH_MAX_RETRIES", "0", "watch_max_retries", 1),
            ("WATCH_MAX_RETRIES", "100", "watch_max_retries", 20),
        ],
    )
    def test_monitor_ints_clamped(
        self, monkeypatch: pytest.MonkeyPatch, var: str, raw: str, attr: str, expected: int
    ) -> None:
        monkeypatch.setenv(f"VIZIER_MONITOR_{var}", raw)
        assert getattr(load_config().monitor, attr) == expected

    def test_metrics_port_clamped_low(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIZIER_MONITOR_METRICS_PORT", "80")
        assert load_config().metrics.port == 1024

    def test_metrics_port_clamped_high(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIZIER_MONITOR_METRICS_PORT", "70000")
        assert load_config().metrics.port == 65535

    def test_unparsable_int_uses_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIZIER_MONITOR_RECONCILE_INTERVAL", "twenty")
        assert load_config().monitor.reconcile_interval_seconds == 20


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestConfigValidation:
    def test_invalid_log_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIZIER_MONITOR_LOG_LEVEL", "verbose")
        with pytest.raises(ValueError, match="Invalid log level"):
            load_config()

    def test_invalid_log_format(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIZIER_MONITOR_LOG_FORMAT", "xml")
        with pytest.raises(ValueError, match="Invalid log format"):
            load_config()

    @pytest.mark.parametrize("var", ["NAMESPACE", "VIZIER_NAME", "CLOUD_CONNECTOR_LABEL"])
    def test_empty_name_rejected(self, monkeypatch: pytest.MonkeyPatch, var: str) -> None:
        monkeypatch.setenv(f"VIZIER_MONITOR_{var}", "  ")
        with pytest.raises(ValueError, match=var):
            load_config()


# ---------------------------------------------------------------------------
# Booleans
# ---------------------------------------------------------------------------


class TestConfigBooleans:
    @pytest.mark.parametrize("raw", ["1", "true", "TRUE", "yes", "on"])
    def test_truthy(self, monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
        monkeypatch.setenv("VIZIER_MONITOR_FORGET_DELETED_PODS", raw)
        assert load_config().monitor.forget_deleted_pods is True

    @pytest.mark.parametrize("raw", ["0", "false", "no", "off", ""])
    def test_falsy(self, monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
        monkeypatch.setenv("VIZIER_MONITOR_METRICS_ENABLED", raw)
        assert load_config().metrics.enabled is False
