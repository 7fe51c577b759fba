"""
Line decoder: turns raw input lines into typed events.

A line that parses as standard JSON becomes a JSON event carrying the parsed
value; anything else becomes a TEXT event carrying the trimmed line.
"""

import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional


class EventKind(str, Enum):
    """Kind of payload carried by an event."""
    JSON = "json"
    TEXT = "text"


@dataclass(frozen=True)
class Event:
    """A decoded input line, immutable once created."""
    kind: EventKind
    payload: Any
    captured_at: float  # seconds since the epoch

    @property
    def timestamp_ms(self) -> int:
        return int(self.captured_at * 1000)

    def to_message(self, session_id: str) -> Dict[str, Any]:
        """Wire form sent with the emit message."""
        return {
            "sessionId": session_id,
            "kind": self.kind.value,
            "payload": self.payload,
            "timestamp": self.timestamp_ms,
        }


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant: {name}")


def decode_line(line: str, clock: Callable[[], float] = time.time) -> Optional[Event]:
    """
    Decode one input line.

    Returns None for blank lines. Never raises: a parse failure is the
    TEXT branch, not an error.
    """
    trimmed = line.strip()
    if not trimmed:
        return None

    try:
        parsed = json.loads(trimmed, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return Event(EventKind.TEXT, trimmed, clock())

    return Event(EventKind.JSON, parsed, clock())


__all__ = ["Event", "EventKind", "decode_line"]
