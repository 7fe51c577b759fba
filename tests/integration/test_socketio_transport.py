"""
Integration tests for the Socket.IO transport against a local
python-socketio collector served by aiohttp.
"""

import pytest
import socketio
from aiohttp import test_utils, web

from vibex.console import Reporter
from vibex.runner import run_stream
from vibex.transport.base import CLIENT_DISCONNECT
from vibex.transport.sio import SocketIOTransport
from vibex.utils.config import ServerUrls
from vibex.utils.errors import HandshakeError, TransportError
from tests.fixtures.transport_fixtures import lines_from
from tests.utils.async_helpers import wait_for_condition


class Collector:
    """Records what clients send; can push signals and kick clients."""

    def __init__(self):
        self.sio = socketio.AsyncServer(async_mode="aiohttp")
        self.app = web.Application()
        self.sio.attach(self.app)
        self.sids = []
        self.joins = []
        self.emits = []

        self.sio.on("connect", self.on_connect)
        self.sio.on("join-session", self.on_join)
        self.sio.on("cli-emit", self.on_emit)

    async def on_connect(self, sid, environ, auth=None):
        self.sids.append(sid)

    async def on_join(self, sid, data):
        self.joins.append(data)

    async def on_emit(self, sid, data):
        self.emits.append(data)


@pytest.fixture
async def collector():
    c = Collector()
    server = test_utils.TestServer(c.app)
    await server.start_server()
    c.url = f"http://{server.host}:{server.port}"
    yield c
    await server.close()


@pytest.mark.integration
class TestSocketIOTransport:
    """Test SocketIOTransport against a real server."""

    @pytest.mark.asyncio
    async def test_connect_emit_disconnect(self, collector):
        transport = SocketIOTransport()
        reasons = []
        transport.on_disconnect(reasons.append)

        await transport.connect(collector.url, timeout=5)
        assert transport.connected

        await transport.emit("join-session", {"sessionId": "vibex-it0001"})
        await wait_for_condition(lambda: collector.joins)
        assert collector.joins == [{"sessionId": "vibex-it0001"}]

        await transport.disconnect()
        assert not transport.connected
        assert reasons == [CLIENT_DISCONNECT]

    @pytest.mark.asyncio
    async def test_inbound_signal(self, collector):
        transport = SocketIOTransport()
        received = []
        transport.on("quota-reached", received.append)

        await transport.connect(collector.url, timeout=5)
        try:
            await wait_for_condition(lambda: collector.sids)
            await collector.sio.emit("quota-reached", {"current": 3, "limit": 3}, to=collector.sids[0])
            await wait_for_condition(lambda: received)
            assert received == [{"current": 3, "limit": 3}]
        finally:
            await transport.disconnect()

    @pytest.mark.asyncio
    async def test_server_disconnect_is_reported(self, collector):
        transport = SocketIOTransport()
        reasons = []
        transport.on_disconnect(reasons.append)

        await transport.connect(collector.url, timeout=5)
        await wait_for_condition(lambda: collector.sids)
        await collector.sio.disconnect(collector.sids[0])

        await wait_for_condition(lambda: reasons)
        assert not transport.connected
        assert reasons[0] != CLIENT_DISCONNECT

    @pytest.mark.asyncio
    async def test_reconnect_uses_fresh_client(self, collector):
        transport = SocketIOTransport()
        await transport.connect(collector.url, timeout=5)
        await wait_for_condition(lambda: collector.sids)
        await collector.sio.disconnect(collector.sids[0])
        await wait_for_condition(lambda: not transport.connected)

        await transport.connect(collector.url, timeout=5)
        try:
            assert transport.connected
            await wait_for_condition(lambda: len(collector.sids) == 2)
        finally:
            await transport.disconnect()

    @pytest.mark.asyncio
    async def test_handshake_failure(self, unused_tcp_port):
        transport = SocketIOTransport()
        with pytest.raises(HandshakeError):
            await transport.connect(f"http://127.0.0.1:{unused_tcp_port}", timeout=2)
        assert not transport.connected

    @pytest.mark.asyncio
    async def test_emit_without_connection(self):
        with pytest.raises(TransportError):
            await SocketIOTransport().emit("cli-emit", {})

    @pytest.mark.asyncio
    async def test_disconnect_when_never_connected(self):
        await SocketIOTransport().disconnect()


@pytest.mark.integration
class TestEndToEnd:
    """Stream lines through the real stack."""

    @pytest.mark.asyncio
    async def test_run_stream(self, collector, vibex_config):
        urls = ServerUrls(collector.url, collector.url)

        code = await run_stream(
            vibex_config,
            "vibex-it0002",
            urls,
            reused=True,
            reporter=Reporter(),
            lines=lines_from('{"cpu": 1}', "hello"),
        )

        assert code == 0
        await wait_for_condition(lambda: len(collector.emits) == 2)
        assert collector.joins == [{"sessionId": "vibex-it0002"}]
        assert [(e["kind"], e["payload"]) for e in collector.emits] == [
            ("json", {"cpu": 1}),
            ("text", "hello"),
        ]
        assert all(e["sessionId"] == "vibex-it0002" for e in collector.emits)
