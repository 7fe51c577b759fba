"""
vibex - pipe any log stream to a live web dashboard.

Reads lines from standard input and relays each one as a JSON or text event
over a Socket.IO connection, keeping every line across reconnects:
- Line decoding (JSON or text)
- Ordered delivery queue
- Reconnecting session with backoff
- Browser login and session claiming
"""

__version__ = "0.1.0"
__author__ = "vibex team"

__all__ = ["__version__"]
