"""
Test fixtures for vibex.

Provides a fake collector transport, pushable line sources and recording
status sinks.
"""

from .transport_fixtures import FakeTransport, LineFeed, RecordingStatus, lines_from

__all__ = [
    "FakeTransport",
    "LineFeed",
    "RecordingStatus",
    "lines_from",
]
