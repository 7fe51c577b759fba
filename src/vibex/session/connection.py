"""
Connection session for one vibex session id.

Owns the ConnectionState and drives the transport through
connect → join → settle → joined, reconnecting with capped exponential
backoff after every failed handshake or dropped connection. Only ``close``
stops the loop; if the loop dies on an unexpected error the listener gets a
FAILED event.
"""

import asyncio
import random
from contextlib import suppress
from typing import Any, Callable, Optional

from .state import ConnectionState, Trigger, SessionEvent, SessionEventKind, next_state
from ..streaming.decoder import Event
from ..transport.base import Transport
from ..utils.config import ConnectionConfig
from ..utils.errors import ErrorRecovery, HandshakeError, TransportError
from ..utils.logging import get_logger

logger = get_logger("vibex.session")

JOIN_EVENT = "join-session"
EMIT_EVENT = "cli-emit"
RATE_LIMIT_EVENT = "rate-limit-exceeded"
QUOTA_EVENT = "quota-reached"

SessionListener = Callable[[SessionEvent], None]


class ConnectionSession:
    """Connection lifecycle: connect, join, disconnect, reconnect, backoff."""

    def __init__(
        self,
        transport: Transport,
        session_id: str,
        url: str,
        config: Optional[ConnectionConfig] = None,
        listener: Optional[SessionListener] = None,
        rng: Optional[random.Random] = None,
    ):
        self.transport = transport
        self.session_id = session_id
        self.url = url
        self.config = config or ConnectionConfig()
        self._listener = listener
        self._rng = rng

        self._state = ConnectionState.DISCONNECTED
        self._closed = False
        self._dropped = asyncio.Event()
        self._drop_reason: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

        # Stats
        self.failed_handshakes = 0
        self.joins = 0

        transport.on_disconnect(self._on_transport_disconnect)
        transport.on(RATE_LIMIT_EVENT, self._on_rate_limit)
        transport.on(QUOTA_EVENT, self._on_quota)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def writable(self) -> bool:
        """Joined and the transport accepts writes."""
        return self._state is ConnectionState.JOINED and self.transport.connected

    def set_listener(self, listener: SessionListener) -> None:
        self._listener = listener

    def _apply(self, trigger: Trigger) -> ConnectionState:
        old = self._state
        new = next_state(old, trigger)
        if new is not old:
            logger.debug(
                "state_transition",
                session_id=self.session_id,
                trigger=trigger.value,
                old=old.value,
                new=new.value,
            )
        self._state = new
        return new

    def _notify(self, kind: SessionEventKind, **data: Any) -> None:
        if self._listener is not None:
            self._listener(SessionEvent(kind, data))

    def _backoff(self, attempt: int) -> float:
        return ErrorRecovery.backoff_delay(
            attempt,
            base_delay=self.config.reconnection_delay,
            max_delay=self.config.reconnection_delay_max,
            factor=self.config.backoff_factor,
            jitter=self.config.backoff_jitter,
            rng=self._rng,
        )

    # Lifecycle

    def start(self) -> asyncio.Task:
        """Run the connect loop as a background task."""
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name=f"session-{self.session_id}")
            self._task.add_done_callback(self._on_task_done)
        return self._task

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "session_loop_crashed",
                session_id=self.session_id,
                error=str(error),
                exc_info=error,
            )
            self._notify(SessionEventKind.FAILED, error=f"{type(error).__name__}: {error}")

    async def run(self) -> None:
        attempt = 0
        has_connected = False

        while not self._closed:
            attempt += 1
            self._apply(Trigger.START)
            self._dropped.clear()
            self._drop_reason = None

            try:
                await self.transport.connect(self.url, timeout=self.config.handshake_timeout)
            except HandshakeError as e:
                self._apply(Trigger.HANDSHAKE_FAILED)
                self.failed_handshakes += 1
                delay = self._backoff(attempt)
                logger.info(
                    "handshake_failed",
                    session_id=self.session_id,
                    attempt=attempt,
                    retry_in=round(delay, 3),
                    error=str(e),
                )
                self._notify(SessionEventKind.HANDSHAKE_FAILED, error=str(e), attempt=attempt)
                await asyncio.sleep(delay)
                continue

            self._apply(Trigger.HANDSHAKE_OK)
            self._notify(SessionEventKind.CONNECTED, attempt=attempt, reconnect=has_connected)
            has_connected = True
            attempt = 0

            if await self._join():
                self._apply(Trigger.JOIN_SETTLED)
                self.joins += 1
                logger.info("session_joined", session_id=self.session_id, joins=self.joins)
                self._notify(SessionEventKind.JOINED, joins=self.joins)
                await self._dropped.wait()

            if self._closed:
                break

            self._apply(Trigger.DROPPED)
            reason = self._drop_reason or "transport close"
            logger.info("session_dropped", session_id=self.session_id, reason=reason)
            self._notify(SessionEventKind.DISCONNECTED, reason=reason)
            await asyncio.sleep(self._backoff(1))

    async def _join(self) -> bool:
        """
        Emit the join request and wait out the settle delay.

        Returns False when the connection dropped before the join settled.
        """
        try:
            await self.transport.emit(JOIN_EVENT, {"sessionId": self.session_id})
        except TransportError as e:
            logger.warning("join_failed", session_id=self.session_id, error=str(e))
            self._drop_reason = self._drop_reason or "join failed"
            if self.transport.connected:
                await self.transport.disconnect()
            self._dropped.set()
            return False

        if self.config.join_settle_delay > 0:
            with suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._dropped.wait(), self.config.join_settle_delay)

        return not self._dropped.is_set() and not self._closed

    async def emit(self, event: Event) -> None:
        """Send one event; raises TransportError when the write fails."""
        await self.transport.emit(EMIT_EVENT, event.to_message(self.session_id))

    async def close(self) -> None:
        """Terminal shutdown: stop retrying and close the transport."""
        if self._closed:
            return
        self._closed = True

        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

        self._apply(Trigger.SHUTDOWN)
        try:
            await self.transport.disconnect()
        except TransportError as e:
            logger.warning("transport_close_failed", session_id=self.session_id, error=str(e))
        logger.info("session_closed", session_id=self.session_id)

    # Transport callbacks

    def _on_transport_disconnect(self, reason: Optional[str]) -> None:
        if self._closed:
            return
        self._drop_reason = reason
        self._dropped.set()

    def _on_rate_limit(self, data: Any) -> None:
        data = data if isinstance(data, dict) else {}
        logger.warning("rate_limit_exceeded", session_id=self.session_id, **{
            k: data.get(k) for k in ("limit", "remaining", "resetAt")
        })
        self._notify(
            SessionEventKind.RATE_LIMITED,
            limit=data.get("limit"),
            remaining=data.get("remaining"),
            reset_at=data.get("resetAt"),
            message=data.get("message"),
        )

    def _on_quota(self, data: Any) -> None:
        data = data if isinstance(data, dict) else {}
        logger.warning("quota_reached", session_id=self.session_id, current=data.get("current"), limit=data.get("limit"))
        self._notify(
            SessionEventKind.QUOTA_REACHED,
            current=data.get("current"),
            limit=data.get("limit"),
            message=data.get("message"),
        )


__all__ = [
    "ConnectionSession",
    "SessionListener",
    "JOIN_EVENT",
    "EMIT_EVENT",
    "RATE_LIMIT_EVENT",
    "QUOTA_EVENT",
]
