"""Socket.IO transport backed by python-socketio"""

import asyncio
from typing import Any, List, Optional

import socketio

from .base import Transport, CLIENT_DISCONNECT
from ..utils.logging import get_logger
from ..utils.errors import HandshakeError, TransportError

logger = get_logger("vibex.transport.sio")

# Upper bound on waiting for buffered packets before a graceful close
FLUSH_TIMEOUT = 1.0


class SocketIOTransport(Transport):
    """
    One python-socketio AsyncClient per connection attempt.

    The client's own reconnection is disabled: reconnect and backoff belong
    to the ConnectionSession, which calls ``connect`` again after a drop.
    """

    def __init__(self, transports: Optional[List[str]] = None, name: Optional[str] = None):
        super().__init__(name)
        self.transports = transports or ["websocket", "polling"]
        self._client: Optional[socketio.AsyncClient] = None

    @property
    def connected(self) -> bool:
        return self._client is not None and self._client.connected

    def _build_client(self) -> socketio.AsyncClient:
        client = socketio.AsyncClient(
            reconnection=False,
            logger=False,
            engineio_logger=False,
        )

        async def on_connect():
            await self._handle_connect()

        async def on_disconnect(*args):
            if client is not self._client:
                return
            reason = args[0] if args else None
            await self._handle_disconnect(str(reason) if reason is not None else "transport close")

        client.on("connect", on_connect)
        client.on("disconnect", on_disconnect)

        for event in self._event_handlers:
            client.on(event, self._make_forwarder(event))

        return client

    def _make_forwarder(self, event: str):
        async def forward(*args):
            await self._dispatch(event, args[0] if args else None)
        return forward

    async def connect(self, url: str, timeout: Optional[float] = None) -> None:
        if self.connected:
            return

        await self._discard_client()
        client = self._build_client()
        self._client = client

        try:
            await client.connect(
                url,
                transports=self.transports,
                wait_timeout=timeout or 20.0,
            )
        except asyncio.CancelledError:
            await self._discard_client()
            raise
        except (socketio.exceptions.ConnectionError, OSError, asyncio.TimeoutError) as e:
            await self._discard_client()
            raise HandshakeError(f"Connection to {url} failed: {e}", cause=e) from e

    async def _discard_client(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.disconnect()
        except Exception as e:
            logger.debug("client_discard_failed", error=str(e))

    async def _flush(self, client: socketio.AsyncClient, timeout: float = FLUSH_TIMEOUT) -> None:
        """Wait for engine.io's outbound queue to empty, bounded by ``timeout``."""
        queue = getattr(client.eio, "queue", None)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while queue is not None and not queue.empty() and loop.time() < deadline:
            await asyncio.sleep(0.01)
        # let the write loop finish the batch it took
        await asyncio.sleep(0.01)

    async def disconnect(self) -> None:
        client = self._client
        if client is None:
            return
        was_connected = client.connected
        if was_connected:
            await self._flush(client)
        await self._discard_client()
        if was_connected:
            await self._handle_disconnect(CLIENT_DISCONNECT)

    async def _send(self, event: str, data: Any) -> None:
        client = self._client
        if client is None:
            raise TransportError("No active connection")
        await client.emit(event, data)


__all__ = ["SocketIOTransport"]
