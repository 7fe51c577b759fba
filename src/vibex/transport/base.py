"""Base transport for the collector connection"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..utils.logging import get_logger
from ..utils.errors import TransportError, HandshakeError

logger = get_logger("vibex.transport")

# Reason reported when the local side closed the connection
CLIENT_DISCONNECT = "client disconnect"


class Transport(ABC):
    """Abstract persistent, bidirectional, event-named transport"""

    def __init__(self, name: Optional[str] = None):
        self.name = name or f"{self.__class__.__name__}_{uuid.uuid4().hex[:8]}"
        self._event_handlers: Dict[str, List[Callable]] = {}
        self._disconnect_handlers: List[Callable] = []
        self._stats = {
            "messages_sent": 0,
            "messages_received": 0,
            "errors": 0,
            "connects": 0,
            "connected_at": None,
            "disconnected_at": None,
        }

    @property
    @abstractmethod
    def connected(self) -> bool:
        """Whether the transport currently accepts writes"""

    @abstractmethod
    async def connect(self, url: str, timeout: Optional[float] = None) -> None:
        """Establish the connection, raising HandshakeError on failure"""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection; a no-op when already closed"""

    @abstractmethod
    async def _send(self, event: str, data: Any) -> None:
        """Write one named message"""

    async def emit(self, event: str, data: Any) -> None:
        """Send a named message, raising TransportError on failure"""
        if not self.connected:
            raise TransportError(f"Cannot emit {event!r}: transport not connected")
        try:
            await self._send(event, data)
        except TransportError:
            self._stats["errors"] += 1
            raise
        except Exception as e:
            self._stats["errors"] += 1
            raise TransportError(f"Emit {event!r} failed: {e}", cause=e) from e
        self._stats["messages_sent"] += 1

    def on(self, event: str, handler: Callable) -> None:
        """Register a handler for an inbound named message"""
        self._event_handlers.setdefault(event, []).append(handler)

    def on_disconnect(self, handler: Callable) -> None:
        """Register a handler called with the disconnect reason"""
        self._disconnect_handlers.append(handler)

    async def _dispatch(self, event: str, data: Any = None) -> None:
        """Deliver an inbound message to its handlers"""
        self._stats["messages_received"] += 1
        handlers = self._event_handlers.get(event)
        if not handlers:
            logger.debug("unhandled_event", transport=self.name, event=event)
            return

        for handler in handlers:
            try:
                result = handler(data)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error("event_handler_failed", event=event, error=str(e), exc_info=True)

    async def _handle_connect(self) -> None:
        self._stats["connects"] += 1
        self._stats["connected_at"] = datetime.now()
        logger.info("transport_connected", transport=self.name)

    async def _handle_disconnect(self, reason: Optional[str]) -> None:
        """Connection lost or closed"""
        self._stats["disconnected_at"] = datetime.now()
        logger.info("transport_disconnected", transport=self.name, reason=reason)

        for handler in self._disconnect_handlers:
            try:
                result = handler(reason)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error("disconnect_handler_failed", error=str(e), exc_info=True)

    def get_stats(self) -> Dict[str, Any]:
        return {**self._stats, "connected": self.connected}


__all__ = ["Transport", "TransportError", "HandshakeError", "CLIENT_DISCONNECT"]
