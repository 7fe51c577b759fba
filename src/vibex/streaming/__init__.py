"""Input decoding, delivery queue and stream control."""

from .decoder import Event, EventKind, decode_line
from .queue import DeliveryQueue
from .reader import LineReader, open_stdin

__all__ = ["Event", "EventKind", "decode_line", "DeliveryQueue", "LineReader", "open_stdin"]
