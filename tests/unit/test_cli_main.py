"""Unit tests for vizier_monitor.cli.main."""

from __future__ import annotations

import os
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from click.testing import CliRunner
from kubernetes_asyncio.client import V1ListMeta, V1ObjectMeta, V1Pod, V1PodList, V1PodStatus

from vizier_monitor import __version__
from vizier_monitor.cli.main import _evaluate, cli
from vizier_monitor.collector.watcher import WatcherError
from vizier_monitor.models.config import MonitorConfig, VizierMonitorConfig
from vizier_monitor.models.status import AggregatePhase, StatusResult


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("VIZIER_MONITOR_"):
            monkeypatch.delenv(key)


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


class TestVersionCommand:
    def test_prints_version(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output
        assert "vizier-monitor" in result.output


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


class TestCheckCommand:
    def test_check_prints_phase(self) -> None:
        runner = CliRunner()
        status = StatusResult(AggregatePhase.HEALTHY)
        with patch("vizier_monitor.cli.main._collect_status", new=AsyncMock(return_value=status)):
            result = runner.invoke(cli, ["check"])
        assert result.exit_code == 0
        assert "Namespace: pl" in result.output
        assert "Healthy" in result.output
        assert "Reason" not in result.output

    def test_check_prints_reason(self) -> None:
        runner = CliRunner()
        status = StatusResult(AggregatePhase.UNHEALTHY, "db unreachable")
        with patch("vizier_monitor.cli.main._collect_status", new=AsyncMock(return_value=status)):
            result = runner.invoke(cli, ["check"])
        assert result.exit_code == 0
        assert "Unhealthy" in result.output
        assert "db unreachable" in result.output
        assert "Message" not in result.output

    def test_check_prints_known_reason_message(self) -> None:
        runner = CliRunner()
        status = StatusResult(AggregatePhase.UNHEALTHY, "CloudConnectorInvalidDeployKey")
        with patch("vizier_monitor.cli.main._collect_status", new=AsyncMock(return_value=status)):
            result = runner.invoke(cli, ["check"])
        assert "Message:" in result.output

    def test_check_namespace_flag(self) -> None:
        runner = CliRunner()
        mock_collect = AsyncMock(return_value=StatusResult(AggregatePhase.DISCONNECTED))
        with patch("vizier_monitor.cli.main._collect_status", new=mock_collect):
            result = runner.invoke(cli, ["check", "--namespace", "pixie-system"])
        assert result.exit_code == 0
        config: MonitorConfig = mock_collect.await_args.args[0]
        assert config.namespace == "pixie-system"
        assert "Disconnected" in result.output

    def test_check_name_flag(self) -> None:
        runner = CliRunner()
        mock_collect = AsyncMock(return_value=StatusResult(AggregatePhase.HEALTHY))
        with patch("vizier_monitor.cli.main._collect_status", new=mock_collect):
            result = runner.invoke(cli, ["check", "--name", "vz"])
        assert result.exit_code == 0
        assert mock_collect.await_args.args[0].vizier_name == "vz"
        assert "Vizier:    vz" in result.output

    def test_check_list_failure_exits_nonzero(self) -> None:
        runner = CliRunner()
        mock_collect = AsyncMock(side_effect=WatcherError("could not get pod list"))
        with patch("vizier_monitor.cli.main._collect_status", new=mock_collect):
            result = runner.invoke(cli, ["check"])
        assert result.exit_code == 1
        assert "could not get pod list" in result.output

    def test_check_invalid_env_exits_nonzero(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIZIER_MONITOR_LOG_FORMAT", "xml")
        runner = CliRunner()
        result = runner.invoke(cli, ["check"])
        assert result.exit_code == 1
        assert "Invalid log format" in result.output


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


class TestRunCommand:
    def test_run_passes_overrides(self) -> None:
        runner = CliRunner()
        mock_main = AsyncMock()
        with patch("vizier_monitor.app.main", new=mock_main):
            result = runner.invoke(cli, ["run", "-n", "pixie-system", "--name", "vz", "--log-level", "DEBUG"])
        assert result.exit_code == 0
        config: VizierMonitorConfig = mock_main.await_args.args[0]
        assert config.monitor.namespace == "pixie-system"
        assert config.monitor.vizier_name == "vz"
        assert config.log.level == "debug"

    def test_run_defaults_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VIZIER_MONITOR_NAMESPACE", "from-env")
        runner = CliRunner()
        mock_main = AsyncMock()
        with patch("vizier_monitor.app.main", new=mock_main):
            result = runner.invoke(cli, ["run"])
        assert result.exit_code == 0
        config: VizierMonitorConfig = mock_main.await_args.args[0]
        assert config.monitor.namespace == "from-env"
        assert config.monitor.vizier_name == "pixie"


# ---------------------------------------------------------------------------
# _evaluate
# ---------------------------------------------------------------------------


class TestEvaluate:
    async def test_evaluates_without_writing(self) -> None:
        pod = V1Pod(
            metadata=V1ObjectMeta(name="vizier-cloud-connector-7d9f", labels={"name": "vizier-cloud-connector"}),
            status=V1PodStatus(phase="Pending"),
        )
        core = MagicMock()
        core.list_namespaced_pod = AsyncMock(
            return_value=V1PodList(items=[pod], metadata=V1ListMeta(resource_version="5"))
        )
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))

        result = await _evaluate(core, MonitorConfig(), http_client=client)

        assert result == StatusResult(AggregatePhase.UPDATING, "")
        core.list_namespaced_pod.assert_awaited_once_with("pl")
        assert client.is_closed

    async def test_list_failure_raises(self) -> None:
        core = MagicMock()
        core.list_namespaced_pod = AsyncMock(side_effect=RuntimeError("forbidden"))
        with pytest.raises(WatcherError):
            await _evaluate(core, MonitorConfig())
