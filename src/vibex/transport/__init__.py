"""Collector transport layer

Provides the abstract transport used by the connection session and its
Socket.IO implementation.
"""

from .base import Transport, TransportError, HandshakeError
from .sio import SocketIOTransport

__all__ = [
    "Transport",
    "TransportError",
    "HandshakeError",
    "SocketIOTransport",
]
