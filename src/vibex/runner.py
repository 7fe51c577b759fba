"""
Wires one streaming run together: transport, session, queue, controller,
signal handling and standard input.
"""

import asyncio
import signal
from typing import Any, AsyncIterable, Optional

from .auth.login import claim_session
from .console import Reporter
from .session.connection import ConnectionSession
from .streaming.controller import StreamController
from .streaming.queue import DeliveryQueue
from .streaming.reader import LineReader, open_stdin
from .transport.base import Transport
from .transport.sio import SocketIOTransport
from .utils.config import ServerUrls, VibexConfig
from .utils.logging import get_logger

logger = get_logger("vibex.runner")


def install_signal_handlers(controller: StreamController) -> None:
    """Route SIGINT and SIGTERM to ``controller.interrupt``."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, controller.interrupt)
        except (NotImplementedError, RuntimeError):
            # No loop signal support (Windows)
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(controller.interrupt))


def remove_signal_handlers() -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.remove_signal_handler(sig)
        except (NotImplementedError, RuntimeError):
            signal.signal(sig, signal.SIG_DFL)


def build_controller(
    config: VibexConfig,
    session_id: str,
    socket_url: str,
    reporter: Optional[Reporter] = None,
    transport: Optional[Transport] = None,
) -> StreamController:
    transport = transport or SocketIOTransport(transports=config.connection.transports)
    session = ConnectionSession(transport, session_id, socket_url, config=config.connection)
    queue = DeliveryQueue(
        max_size=config.stream.max_queue_size,
        overflow=config.stream.overflow_policy,
    )
    return StreamController(session, queue=queue, config=config.stream, status=reporter)


async def run_stream(
    config: VibexConfig,
    session_id: str,
    urls: ServerUrls,
    token: Optional[str] = None,
    reused: bool = False,
    reporter: Optional[Reporter] = None,
    lines: Optional[AsyncIterable[str]] = None,
    transport: Optional[Transport] = None,
    stdin: Any = None,
) -> int:
    """
    Stream standard input (or ``lines``) to ``session_id``.

    Returns:
        Process exit status

    Raises:
        InputError: If standard input cannot be read
    """
    reporter = reporter or Reporter()
    logger.info(
        "stream_starting",
        session_id=session_id,
        web_url=urls.web_url,
        socket_url=urls.socket_url,
        reused=reused,
    )

    if reused:
        reporter.reusing_session(session_id, urls.web_url)
    else:
        if token and await claim_session(session_id, token, urls.web_url):
            reporter.session_claimed()
        reporter.banner(session_id, urls.web_url)
        reporter.reuse_tip(session_id, urls.web_url)

    controller = build_controller(config, session_id, urls.socket_url, reporter, transport)
    install_signal_handlers(controller)
    try:
        if lines is not None:
            code = await controller.run(lines)
        else:
            async with open_stdin(stdin) as source:
                code = await controller.run(LineReader(source))
    finally:
        remove_signal_handlers()

    logger.info("stream_finished", session_id=session_id, stats=controller.stats.__dict__)
    return code


__all__ = ["run_stream", "build_controller", "install_signal_handlers"]
