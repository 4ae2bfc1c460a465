"""
Tests for the Courier command-line interface.
"""

import json
import logging

import pytest
from click.testing import CliRunner

from courier.cli import main as cli_main
from courier.core.config import CourierConfig, GateConfig
from courier.core.models import ExecutionOutcome
from courier.execution import IsolatedExecutor
from courier.orchestrator import RequestOrchestrator, create_orchestrator


@pytest.fixture(autouse=True)
def restore_logging():
    """Detach handlers bound to the runner's streams once a test ends."""
    yield
    for name in ("courier", "aiohttp", "asyncio"):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)
        logger.propagate = True
    logging.getLogger().handlers.clear()


@pytest.fixture
def cli_config(monkeypatch) -> CourierConfig:
    config = CourierConfig(gate=GateConfig(record_rejections=True))
    monkeypatch.setattr(cli_main, "get_config", lambda: config)
    return config


@pytest.fixture
def offline(monkeypatch, fake_transport):
    """Route CLI requests through the fake transport."""
    monkeypatch.setattr(
        cli_main,
        "create_orchestrator",
        lambda config: create_orchestrator(config, transport=fake_transport),
    )
    return fake_transport


def run(*args):
    return CliRunner().invoke(cli_main.cli, ["--log-level", "ERROR", *args])


class TestSendCommand:
    """Tests for `courier send`."""

    def test_successful_send_prints_outcome(self, cli_config, offline, temp_dir):
        history_path = temp_dir / "history.json"
        result = run(
            "send",
            "https://example.com/api",
            "-X",
            "post",
            "-H",
            "Accept: application/json",
            "-t",
            "application/json",
            "-f",
            "a=1",
            "--history-path",
            str(history_path),
        )

        assert result.exit_code == 0, result.output
        outcome = json.loads(result.stdout)
        assert outcome["success"] is True
        assert outcome["status"] == 200

        [sent] = offline.sent
        assert sent.method.value == "POST"
        assert sent.raw_body == '{"a":"1"}'
        assert sent.headers["Accept"] == "application/json"
        assert history_path.exists()

    def test_rejected_request_exits_with_error(self, cli_config, offline, temp_dir):
        result = run(
            "send", "ftp://example.com/file", "--history-path", str(temp_dir / "h.json")
        )

        assert result.exit_code == 1
        outcome = json.loads(result.stdout)
        assert outcome["success"] is False
        assert outcome["error_kind"] == "validation_error"
        assert offline.sent == []

    def test_data_and_fields_are_exclusive(self, cli_config, offline):
        result = run("send", "https://example.com", "-d", "raw", "-f", "a=1")
        assert result.exit_code == 2
        assert "either --data or --field" in result.output

    def test_malformed_header_option(self, cli_config, offline):
        result = run("send", "https://example.com", "-H", "NoColon")
        assert result.exit_code == 2

    def test_isolated_flag_marks_request(self, cli_config, monkeypatch, temp_dir):
        seen = []

        async def fake_submit(self, request):
            seen.append((request, self.selector.select(request)))
            return ExecutionOutcome.ok(request.id, 204)

        monkeypatch.setattr(RequestOrchestrator, "submit", fake_submit)
        result = run(
            "send",
            "https://example.com",
            "--isolated",
            "--timeout-ms",
            "250",
            "--history-path",
            str(temp_dir / "h.json"),
        )

        assert result.exit_code == 0, result.output
        [(request, executor)] = seen
        assert request.cross_origin_restricted
        assert isinstance(executor, IsolatedExecutor)
        assert executor.timeout_ms == 250


class TestHistoryCommand:
    """Tests for `courier history`."""

    def test_empty_history(self, cli_config, temp_dir):
        result = run("history", "--history-path", str(temp_dir / "empty.json"))
        assert result.exit_code == 0
        assert "No history recorded." in result.output

    def test_lists_sent_requests(self, cli_config, offline, temp_dir):
        history_path = str(temp_dir / "history.db")
        run("send", "https://example.com/one", "--history-path", history_path)
        run("send", "ftp://example.com/two", "--history-path", history_path)

        result = run("history", "--history-path", history_path)

        assert result.exit_code == 0
        lines = result.stdout.strip().splitlines()
        assert len(lines) == 2
        assert "ftp://example.com/two" in lines[0]
        assert "[failed: validation_error]" in lines[0]
        assert "https://example.com/one" in lines[1]
        assert "[completed: 200]" in lines[1]

    def test_limit(self, cli_config, offline, temp_dir):
        history_path = str(temp_dir / "history.json")
        for i in range(3):
            run("send", f"https://example.com/{i}", "--history-path", history_path)

        result = run("history", "--history-path", history_path, "-n", "1")
        assert len(result.stdout.strip().splitlines()) == 1
        assert "https://example.com/2" in result.stdout


def test_processors_command():
    result = run("processors")
    assert result.exit_code == 0
    assert result.stdout.splitlines() == [
        "application/x-www-form-urlencoded (default)",
        "application/json",
        "multipart/form-data",
    ]


def test_version():
    result = CliRunner().invoke(cli_main.cli, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output
