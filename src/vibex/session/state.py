"""
Connection state machine.

The session owns exactly one ConnectionState. Every change goes through
``next_state``, a pure function over (state, trigger).
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Tuple


class ConnectionState(enum.Enum):
    """Lifecycle of the transport connection for one session."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    JOINED = "joined"


class Trigger(enum.Enum):
    START = "start"
    HANDSHAKE_OK = "handshake_ok"
    HANDSHAKE_FAILED = "handshake_failed"
    JOIN_SETTLED = "join_settled"
    DROPPED = "dropped"
    SHUTDOWN = "shutdown"


TRANSITIONS: Mapping[Tuple[ConnectionState, Trigger], ConnectionState] = {
    (ConnectionState.DISCONNECTED, Trigger.START): ConnectionState.CONNECTING,
    (ConnectionState.CONNECTING, Trigger.HANDSHAKE_OK): ConnectionState.CONNECTED,
    (ConnectionState.CONNECTING, Trigger.HANDSHAKE_FAILED): ConnectionState.CONNECTING,
    (ConnectionState.CONNECTED, Trigger.JOIN_SETTLED): ConnectionState.JOINED,
    (ConnectionState.CONNECTED, Trigger.DROPPED): ConnectionState.DISCONNECTED,
    (ConnectionState.JOINED, Trigger.DROPPED): ConnectionState.DISCONNECTED,
}


def next_state(state: ConnectionState, trigger: Trigger) -> ConnectionState:
    """Target state for ``trigger``; unknown pairs leave the state unchanged."""
    if trigger is Trigger.SHUTDOWN:
        return ConnectionState.DISCONNECTED
    return TRANSITIONS.get((state, trigger), state)


class SessionEventKind(enum.Enum):
    """Notifications the session posts to the stream controller."""
    CONNECTED = "connected"
    JOINED = "joined"
    DISCONNECTED = "disconnected"
    HANDSHAKE_FAILED = "handshake_failed"
    RATE_LIMITED = "rate_limited"
    QUOTA_REACHED = "quota_reached"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionEvent:
    kind: SessionEventKind
    data: Dict[str, Any] = field(default_factory=dict)


__all__ = [
    "ConnectionState",
    "Trigger",
    "TRANSITIONS",
    "next_state",
    "SessionEventKind",
    "SessionEvent",
]
