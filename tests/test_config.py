"""
Tests for configuration loading and URL resolution.
"""

import pytest

from vibex.utils.config import (
    OverflowPolicy,
    ServerUrls,
    derive_socket_url,
    load_config,
    resolve_urls,
)
from vibex.utils.errors import ConfigurationError


class TestLoadConfig:
    """Test load_config."""

    def test_defaults(self):
        config = load_config(environ={})

        assert config.connection.reconnection_delay == 1.0
        assert config.connection.reconnection_delay_max == 5.0
        assert config.connection.join_settle_delay == 0.1
        assert config.connection.transports == ["websocket", "polling"]
        assert config.stream.max_queue_size is None
        assert config.stream.overflow_policy is OverflowPolicy.DROP_OLDEST
        assert config.logging.level == "WARNING"

    def test_env_overrides(self):
        config = load_config(environ={
            "VIBEX_CONNECTION__RECONNECTION_DELAY": "2.5",
            "VIBEX_CONNECTION__TRANSPORTS": "websocket",
            "VIBEX_STREAM__MAX_QUEUE_SIZE": "100",
            "VIBEX_STREAM__OVERFLOW_POLICY": "reject_new",
            "VIBEX_LOGGING__LEVEL": "debug",
        })

        assert config.connection.reconnection_delay == 2.5
        assert config.connection.transports == ["websocket"]
        assert config.stream.max_queue_size == 100
        assert config.stream.overflow_policy is OverflowPolicy.REJECT_NEW
        assert config.logging.level == "DEBUG"

    def test_flat_variables_are_ignored(self):
        config = load_config(environ={"VIBEX_TOKEN": "secret", "VIBEX_WEB_URL": "http://x"})
        assert config.app_name == "vibex"

    def test_overrides_beat_env(self):
        config = load_config(
            overrides={"logging": {"level": "ERROR"}},
            environ={"VIBEX_LOGGING__LEVEL": "INFO"},
        )
        assert config.logging.level == "ERROR"

    @pytest.mark.parametrize("env", [
        {"VIBEX_CONNECTION__RECONNECTION_DELAY": "-1"},
        {"VIBEX_CONNECTION__BACKOFF_JITTER": "2"},
        {"VIBEX_STREAM__MAX_QUEUE_SIZE": "0"},
        {"VIBEX_LOGGING__LEVEL": "LOUD"},
        {"VIBEX_LOGGING__FORMAT": "xml"},
    ])
    def test_invalid_values(self, env):
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(environ=env)
        assert "Configuration validation failed" in str(exc_info.value)


class TestSocketUrl:
    """Test derive_socket_url."""

    @pytest.mark.parametrize("web,socket", [
        ("http://localhost:3000", "http://localhost:3001"),
        ("http://localhost", "http://localhost:3001"),
        ("http://127.0.0.1:8080", "http://127.0.0.1:8081"),
        ("https://vibex.sh", "https://socket.vibex.sh"),
        ("https://staging.vibex.sh", "https://socket.staging.vibex.sh"),
    ])
    def test_derivation(self, web, socket):
        assert derive_socket_url(web) == socket

    @pytest.mark.parametrize("web", ["not a url", "localhost:3000", ""])
    def test_invalid(self, web):
        with pytest.raises(ConfigurationError):
            derive_socket_url(web)


class TestResolveUrls:
    """Test resolve_urls priority."""

    def test_production_default(self):
        assert resolve_urls(environ={}) == ServerUrls("https://vibex.sh", "https://socket.vibex.sh")

    def test_web_wins(self):
        urls = resolve_urls(web="http://localhost:4000", server="https://other.dev", local=True, environ={})
        assert urls == ServerUrls("http://localhost:4000", "http://localhost:4001")

    def test_explicit_socket(self):
        urls = resolve_urls(web="https://vibex.dev", socket="wss://ws.vibex.dev", environ={})
        assert urls.socket_url == "wss://ws.vibex.dev"

    def test_server_shorthand(self):
        urls = resolve_urls(server="https://vibex.dev", environ={})
        assert urls == ServerUrls("https://vibex.dev", "https://socket.vibex.dev")

    def test_local(self):
        assert resolve_urls(local=True, environ={}) == ServerUrls(
            "http://localhost:3000", "http://localhost:3001"
        )

    def test_local_uses_env(self):
        urls = resolve_urls(local=True, environ={
            "VIBEX_WEB_URL": "http://localhost:5000",
            "VIBEX_SOCKET_URL": "http://localhost:5001",
        })
        assert urls == ServerUrls("http://localhost:5000", "http://localhost:5001")

    def test_env_web_url(self):
        urls = resolve_urls(environ={"VIBEX_WEB_URL": "https://self-hosted.example"})
        assert urls == ServerUrls("https://self-hosted.example", "https://socket.self-hosted.example")
