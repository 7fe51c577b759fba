"""
Stream controller.

One control loop consumes a merged queue of items (input lines, end of
input, session notifications, poll ticks) and is the only code that touches
the delivery queue. Handling one item at a time means a drain always finishes
before the next line is looked at, so no event can overtake an earlier one.
"""

import asyncio
from contextlib import suppress
from dataclasses import dataclass
from typing import AsyncIterable, Optional, Union

from .decoder import Event, decode_line
from .queue import DeliveryQueue
from ..session.connection import ConnectionSession
from ..session.state import SessionEvent, SessionEventKind
from ..utils.config import StreamConfig
from ..utils.errors import InputError, TransportError
from ..utils.logging import get_logger

logger = get_logger("vibex.streaming.controller")


@dataclass(frozen=True)
class LineRead:
    line: str


@dataclass(frozen=True)
class InputClosed:
    pass


@dataclass(frozen=True)
class InputFailed:
    error: BaseException


ControlItem = Union[LineRead, InputClosed, InputFailed, SessionEvent]


class StatusSink:
    """Receives user-visible status notifications. The default is silent."""

    def connected(self, attempt: int, reconnect: bool) -> None: ...
    def connection_error(self, error: str, attempt: int) -> None: ...
    def disconnected(self, reason: str) -> None: ...
    def rate_limited(self, limit, remaining, reset_at, message=None) -> None: ...
    def quota_reached(self, current, limit, discarded: int, message=None) -> None: ...
    def stream_ended(self, forfeited: int) -> None: ...
    def interrupted(self, pending: int) -> None: ...


@dataclass
class StreamStats:
    lines_read: int = 0
    events_decoded: int = 0
    sent_immediately: int = 0
    sent_from_queue: int = 0
    send_failures: int = 0
    suppressed_discards: int = 0
    rejected: int = 0
    forfeited: int = 0


class StreamController:
    """Decides per event whether to send now or queue; drains on join."""

    def __init__(
        self,
        session: ConnectionSession,
        queue: Optional[DeliveryQueue] = None,
        config: Optional[StreamConfig] = None,
        status: Optional[StatusSink] = None,
    ):
        self.session = session
        self.config = config or StreamConfig()
        self.queue = queue if queue is not None else DeliveryQueue(
            max_size=self.config.max_queue_size,
            overflow=self.config.overflow_policy,
        )
        self.status = status or StatusSink()
        self.stats = StreamStats()

        self._control: "asyncio.Queue[ControlItem]" = asyncio.Queue()
        self._interrupted = asyncio.Event()
        self._suppressed = False
        self._input_closed = False
        self._failures_since_close = 0
        self._ever_connected = False

        session.set_listener(self.post)

    # Inputs to the control loop

    def post(self, item: ControlItem) -> None:
        """Queue an item for the control loop. Safe from any callback."""
        self._control.put_nowait(item)

    def interrupt(self) -> None:
        """Abort: stop draining and waiting, close without flushing."""
        self._interrupted.set()

    @property
    def interrupted(self) -> bool:
        return self._interrupted.is_set()

    @property
    def suppressed(self) -> bool:
        return self._suppressed

    async def _pump(self, lines: AsyncIterable[str]) -> None:
        try:
            async for line in lines:
                self.post(LineRead(line))
        except InputError as e:
            self.post(InputFailed(e))
            return
        except Exception as e:
            self.post(InputFailed(InputError(f"Input stream failed: {e}", cause=e)))
            return
        self.post(InputClosed())

    # Main entry

    async def run(self, lines: AsyncIterable[str]) -> int:
        """
        Relay ``lines`` until input ends (and the queue is flushed or
        forfeited) or until interrupted.

        Returns:
            Process exit status (0 on graceful end or interrupt)

        Raises:
            InputError: If reading the input failed
            TransportError: If the connection loop stopped on an unexpected error
        """
        self.session.start()
        pump = asyncio.create_task(self._pump(lines), name="vibex-input")
        loop_task = asyncio.create_task(self._control_loop(), name="vibex-control")
        interrupt_task = asyncio.create_task(self._interrupted.wait(), name="vibex-interrupt")

        try:
            done, _ = await asyncio.wait(
                {loop_task, interrupt_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if loop_task in done:
                loop_task.result()
            else:
                loop_task.cancel()
                with suppress(asyncio.CancelledError):
                    await loop_task
                pending = len(self.queue)
                logger.warning("interrupted", pending=pending)
                self.status.interrupted(pending)
        finally:
            for task in (pump, interrupt_task, loop_task):
                if not task.done():
                    task.cancel()
                    with suppress(asyncio.CancelledError):
                        await task
            await self.session.close()

        return 0

    async def _control_loop(self) -> None:
        while True:
            if self._input_closed:
                if self._shutdown_complete():
                    return
                try:
                    item = await asyncio.wait_for(
                        self._control.get(), self.config.shutdown_poll_interval
                    )
                except asyncio.TimeoutError:
                    continue
            else:
                item = await self._control.get()

            await self._handle(item)

    def _shutdown_complete(self) -> bool:
        """Queue flushed, or the connection is confirmed dead with events left."""
        if not self.queue:
            logger.info("stream_flushed", stats=self.stats.__dict__)
            self.status.stream_ended(0)
            return True

        if self.session.closed or self._failures_since_close >= self.config.shutdown_forfeit_after:
            forfeited = self.queue.clear()
            self.stats.forfeited += forfeited
            logger.warning(
                "forfeiting_queued_events",
                forfeited=forfeited,
                failed_handshakes=self._failures_since_close,
            )
            self.status.stream_ended(forfeited)
            return True

        return False

    # Item handlers

    async def _handle(self, item: ControlItem) -> None:
        if isinstance(item, LineRead):
            await self._on_line(item.line)
        elif isinstance(item, SessionEvent):
            await self._on_session_event(item)
        elif isinstance(item, InputClosed):
            self._input_closed = True
            logger.info("input_closed", queued=len(self.queue))
        elif isinstance(item, InputFailed):
            raise item.error

    def _can_deliver(self) -> bool:
        return not self._suppressed and not self.interrupted and self.session.writable

    async def _on_line(self, line: str) -> None:
        self.stats.lines_read += 1
        event = decode_line(line)
        if event is None:
            return
        self.stats.events_decoded += 1

        if self._suppressed:
            self.stats.suppressed_discards += 1
            logger.debug("event_discarded_quota", discarded=self.stats.suppressed_discards)
            return

        if self._can_deliver() and not self.queue:
            await self._send(event)
            self.stats.sent_immediately += 1
        elif not self.queue.enqueue(event):
            self.stats.rejected += 1
            logger.debug("event_rejected_queue_full", rejected=self.stats.rejected)

    async def _send(self, event: Event) -> None:
        """Write one event; a failed write is presumed lost, never retried."""
        try:
            await self.session.emit(event)
        except TransportError as e:
            self.stats.send_failures += 1
            logger.warning("event_lost", kind=event.kind.value, error=str(e))

    async def _deliver_queued(self, event: Event) -> bool:
        if not self._can_deliver():
            return False
        await self._send(event)
        self.stats.sent_from_queue += 1
        return True

    async def drain(self) -> int:
        """Send queued events in order while the session stays writable."""
        if not self._can_deliver() or not self.queue:
            return 0
        forwarded = await self.queue.drain_into(self._deliver_queued)
        logger.info("queue_drained", forwarded=forwarded, remaining=len(self.queue))
        return forwarded

    async def _on_session_event(self, event: SessionEvent) -> None:
        kind = event.kind
        data = event.data

        if kind is SessionEventKind.JOINED:
            if self._suppressed:
                logger.info("delivery_resumed", discarded=self.stats.suppressed_discards)
            self._suppressed = False
            await self.drain()

        elif kind is SessionEventKind.CONNECTED:
            self._ever_connected = True
            self.status.connected(data.get("attempt", 0), data.get("reconnect", False))

        elif kind is SessionEventKind.DISCONNECTED:
            self.status.disconnected(data.get("reason", "unknown"))

        elif kind is SessionEventKind.HANDSHAKE_FAILED:
            if self._input_closed:
                self._failures_since_close += 1
            if not self._ever_connected:
                self.status.connection_error(data.get("error", ""), data.get("attempt", 0))

        elif kind is SessionEventKind.RATE_LIMITED:
            self.status.rate_limited(
                data.get("limit"), data.get("remaining"), data.get("reset_at"), data.get("message")
            )

        elif kind is SessionEventKind.QUOTA_REACHED:
            discarded = self.queue.clear()
            self._suppressed = True
            logger.warning("delivery_suppressed", discarded=discarded)
            self.status.quota_reached(
                data.get("current"), data.get("limit"), discarded, data.get("message")
            )

        elif kind is SessionEventKind.FAILED:
            forfeited = self.queue.clear()
            self.stats.forfeited += forfeited
            logger.error("connection_loop_failed", error=data.get("error"), forfeited=forfeited)
            raise TransportError(f"Connection loop stopped: {data.get('error')}")


__all__ = [
    "StreamController",
    "StreamStats",
    "StatusSink",
    "LineRead",
    "InputClosed",
    "InputFailed",
    "ControlItem",
]
