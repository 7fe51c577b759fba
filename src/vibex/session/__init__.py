"""Session identity and the connection state machine."""

from .identity import generate_session_id, normalize_session_id
from .state import ConnectionState, SessionEvent, SessionEventKind
from .connection import ConnectionSession

__all__ = [
    "generate_session_id",
    "normalize_session_id",
    "ConnectionState",
    "SessionEvent",
    "SessionEventKind",
    "ConnectionSession",
]
