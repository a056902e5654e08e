from __future__ import annotations

from typing import Callable, List, Optional

import pytest
from typer.testing import CliRunner

from cli.app import app
from cli.config import load_config
from datastore.record_store import StoreInitializationError
from protocol.messages import Message, MessageKind
from settings import Settings, get_settings


class StubClient:
    def __init__(self, config, succeed: bool = True) -> None:
        self.config = config
        self.succeed = succeed
        self.prompts: List[str] = []
        self.answers: List[str] = []
        self.closed = False

    def run_dialog(
        self,
        answer: Callable[[str], str],
        on_message: Callable[[Message], None],
    ) -> bool:
        script = [
            Message.info("Welcome to the CO2 monitoring service!"),
            Message.request("Please enter your User ID: "),
            Message.request("Please enter your postcode: "),
            Message.request("Please enter the CO2 reading (in ppm): "),
        ]
        if self.succeed:
            script.append(Message.success("Data accepted and logged at 2024-01-01 00:00:00"))
        else:
            script.append(Message.error("Unexpected info message; expected a response"))
        script.append(Message.close())

        for message in script:
            if message.kind is MessageKind.request:
                self.prompts.append(message.text)
                self.answers.append(answer(message.text))
            else:
                on_message(message)
        return self.succeed

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _install_stub(monkeypatch, stub: StubClient) -> None:
    def factory(config):
        stub.config = config
        return stub

    monkeypatch.setattr("cli.app.CollectorClient", factory)


def test_submit_with_preset_answers(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(
        app,
        ["--port", "9090", "submit", "--user-id", "ab12345678", "--postcode", "cf99 1sn", "--co2", "412.5"],
    )

    assert result.exit_code == 0, result.stdout
    assert stub.answers == ["ab12345678", "cf99 1sn", "412.5"]
    assert stub.config.port == 9090
    assert "SUCCESS: Data accepted and logged" in result.stdout
    assert "Welcome to the CO2 monitoring service!" in result.stdout
    assert stub.closed is True


def test_submit_prompts_interactively(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["submit", "--user-id", "ab12345678"], input="cf99 1sn\n412.5\n")

    assert result.exit_code == 0, result.stdout
    assert stub.answers == ["ab12345678", "cf99 1sn", "412.5"]
    assert "Please enter your postcode" in result.stdout


def test_submit_exits_non_zero_without_success(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None, succeed=False)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["submit"], input="ab12345678\ncf99 1sn\n412.5\n")

    assert result.exit_code == 1
    assert "ERROR: Unexpected info message" in result.stdout
    assert stub.closed is True


def test_serve_applies_overrides(monkeypatch, runner: CliRunner, tmp_path) -> None:
    captured: List[Optional[Settings]] = []
    monkeypatch.setattr("cli.app.run_server", captured.append)
    store_path = tmp_path / "records.csv"

    result = runner.invoke(
        app,
        ["--port", "9191", "serve", "--max-sessions", "2", "--store-path", str(store_path)],
    )

    assert result.exit_code == 0, result.stdout
    assert len(captured) == 1
    settings = captured[0]
    assert settings is not None
    assert settings.port == 9191
    assert settings.max_sessions == 2
    assert settings.store_path == str(store_path)
    assert "Serving on 127.0.0.1:9191" in result.stdout


def test_serve_exits_when_store_cannot_be_initialized(monkeypatch, runner: CliRunner) -> None:
    def failing_run(_settings: Settings) -> None:
        raise StoreInitializationError("Failed to initialize record store at /nope: denied")

    monkeypatch.setattr("cli.app.run_server", failing_run)

    result = runner.invoke(app, ["serve"])

    assert result.exit_code == 1
    assert "Failed to initialize record store" in result.output


def test_port_outside_allowed_range_is_rejected(runner: CliRunner) -> None:
    result = runner.invoke(app, ["--port", "80", "serve"])

    assert result.exit_code == 2


def test_client_config_follows_server_environment(monkeypatch) -> None:
    monkeypatch.setenv("COLLECTOR_HOST", "10.0.0.5")
    monkeypatch.setenv("COLLECTOR_PORT", "9500")
    monkeypatch.setenv("COLLECTOR_CONNECT_TIMEOUT", "nan")

    config = load_config()

    assert config.address == ("10.0.0.5", 9500)
    assert config.connect_timeout == 5.0
    overridden = load_config(host="localhost", port=9600, connect_timeout=1.5)
    assert overridden.address == ("localhost", 9600)
    assert overridden.connect_timeout == 1.5
