"""
Tests for the command-line interface.
"""

import pytest
from click.testing import CliRunner

from vibex import __version__, cli
from vibex.utils.errors import AuthenticationError, InputError, TransportError


@pytest.fixture
def runner(tmp_path):
    return CliRunner(env={"VIBEX_CONFIG_PATH": str(tmp_path / "config.json")})


@pytest.fixture
def captured(monkeypatch):
    """Replace run_stream and record how the CLI called it."""
    calls = []

    async def fake_run_stream(config, session_id, urls, token=None, reused=False, reporter=None):
        calls.append({
            "config": config,
            "session_id": session_id,
            "urls": urls,
            "token": token,
            "reused": reused,
        })
        return 0

    monkeypatch.setattr(cli, "run_stream", fake_run_stream)
    return calls


class TestMainCommand:
    """Test ``vibex``."""

    def test_version(self, runner):
        result = runner.invoke(cli.main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_new_session(self, runner, captured):
        result = runner.invoke(cli.main, [], input="hello\n")

        assert result.exit_code == 0, result.output
        call = captured[0]
        assert call["session_id"].startswith("vibex-")
        assert call["reused"] is False
        assert call["urls"].web_url == "https://vibex.sh"
        assert call["urls"].socket_url == "https://socket.vibex.sh"
        assert call["token"] is None

    def test_reused_session_local(self, runner, captured):
        result = runner.invoke(cli.main, ["-s", "abc123", "--local"])

        assert result.exit_code == 0, result.output
        call = captured[0]
        assert call["session_id"] == "vibex-abc123"
        assert call["reused"] is True
        assert call["urls"].socket_url == "http://localhost:3001"

    def test_web_and_socket_flags(self, runner, captured):
        result = runner.invoke(cli.main, ["--web", "https://vibex.dev", "--socket", "https://ws.vibex.dev"])

        assert result.exit_code == 0, result.output
        assert captured[0]["urls"] == ("https://vibex.dev", "https://ws.vibex.dev")

    def test_token_flag_and_env(self, runner, captured):
        runner.invoke(cli.main, ["--token", "flag-token"])
        runner.invoke(cli.main, [], env={"VIBEX_TOKEN": "env-token"})

        assert [c["token"] for c in captured] == ["flag-token", "env-token"]

    def test_log_level_flag(self, runner, captured):
        result = runner.invoke(cli.main, ["--log-level", "debug"])

        assert result.exit_code == 0, result.output
        assert captured[0]["config"].logging.level == "DEBUG"

    def test_invalid_config_exits_1(self, runner, captured):
        result = runner.invoke(cli.main, [], env={"VIBEX_CONNECTION__RECONNECTION_DELAY": "-1"})

        assert result.exit_code == 1
        assert "Configuration validation failed" in result.output
        assert captured == []

    def test_invalid_web_url_exits_1(self, runner, captured):
        result = runner.invoke(cli.main, ["--web", "not-a-url"])
        assert result.exit_code == 1
        assert "Invalid web URL" in result.output

    def test_input_error_exits_1(self, runner, monkeypatch):
        async def failing_run_stream(*args, **kwargs):
            raise InputError("Standard input is not available")

        monkeypatch.setattr(cli, "run_stream", failing_run_stream)
        result = runner.invoke(cli.main, [])

        assert result.exit_code == 1
        assert "Standard input is not available" in result.output

    @pytest.mark.parametrize("value", ["", "  "])
    def test_blank_session_id_is_rejected(self, runner, captured, value):
        result = runner.invoke(cli.main, ["-s", value])

        assert result.exit_code == 2
        assert "session id must not be blank" in result.output
        assert captured == []

    def test_connection_loop_failure_exits_1(self, runner, monkeypatch):
        async def failing_run_stream(*args, **kwargs):
            raise TransportError("Connection loop stopped: RuntimeError: boom")

        monkeypatch.setattr(cli, "run_stream", failing_run_stream)
        result = runner.invoke(cli.main, [])

        assert result.exit_code == 1
        assert "Connection loop stopped" in result.output


class TestLoginCommand:
    """Test ``vibex login``."""

    def test_login_local(self, runner, monkeypatch):
        urls = []

        async def fake_login(web_url, reporter):
            urls.append(web_url)
            return "tok"

        monkeypatch.setattr(cli, "run_login", fake_login)
        result = runner.invoke(cli.main, ["login", "--local"])

        assert result.exit_code == 0, result.output
        assert urls == ["http://localhost:3000"]

    def test_login_timeout_exits_1(self, runner, monkeypatch):
        async def fake_login(web_url, reporter):
            raise AuthenticationError("Authentication timed out")

        monkeypatch.setattr(cli, "run_login", fake_login)
        result = runner.invoke(cli.main, ["login"])

        assert result.exit_code == 1
        assert "Authentication timed out" in result.output

    def test_login_does_not_stream(self, runner, captured, monkeypatch):
        async def fake_login(web_url, reporter):
            return "tok"

        monkeypatch.setattr(cli, "run_login", fake_login)
        runner.invoke(cli.main, ["login"])

        assert captured == []
