"""
Pytest configuration and shared fixtures for vibex tests.
"""

import pytest
import os
import random
from pathlib import Path
from typing import Generator

# Add src to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from vibex.utils.config import ConnectionConfig, StreamConfig, VibexConfig
from vibex.session.connection import ConnectionSession
from vibex.streaming.controller import StreamController
from tests.fixtures.transport_fixtures import FakeTransport, LineFeed, RecordingStatus


TEST_SESSION_ID = "vibex-abc123"


@pytest.fixture
def connection_config() -> ConnectionConfig:
    """Reconnect timings short enough for tests."""
    return ConnectionConfig(
        reconnection_delay=0.01,
        reconnection_delay_max=0.05,
        backoff_jitter=0.0,
        handshake_timeout=1.0,
        join_settle_delay=0.01,
    )


@pytest.fixture
def stream_config() -> StreamConfig:
    return StreamConfig(shutdown_poll_interval=0.01, shutdown_forfeit_after=3)


@pytest.fixture
def vibex_config(connection_config, stream_config) -> VibexConfig:
    return VibexConfig(connection=connection_config, stream=stream_config)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def session(transport, connection_config) -> ConnectionSession:
    return ConnectionSession(
        transport,
        TEST_SESSION_ID,
        "http://collector.test",
        config=connection_config,
        rng=random.Random(7),
    )


@pytest.fixture
def status() -> RecordingStatus:
    return RecordingStatus()


@pytest.fixture
def controller(session, stream_config, status) -> StreamController:
    return StreamController(session, config=stream_config, status=status)


@pytest.fixture
def feed() -> LineFeed:
    return LineFeed()


@pytest.fixture
def config_path(tmp_path: Path) -> Generator[Path, None, None]:
    """Token config file location inside a temp directory."""
    yield tmp_path / ".vibex" / "config.json"


@pytest.fixture(autouse=True)
def clean_vibex_env(monkeypatch):
    """Keep the developer's VIBEX_* variables out of tests."""
    for key in [k for k in os.environ if k.startswith("VIBEX_")]:
        monkeypatch.delenv(key, raising=False)
