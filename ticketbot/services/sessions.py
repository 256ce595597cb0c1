"""
Ticket Bot Session Manager

One owner for all per-channel interaction state:
- which handler (step instance or management screen) receives a
  channel's events: at most one per channel
- which channels are locked: ordinary messages there are deleted

Map mutations never await, so each one is atomic on the event loop.
Events of one channel are processed strictly in arrival order.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Set

from ..errors import SessionConflict
from ..models.events import InboundEvent, MessageReceived

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Channel-scoped session registry and message filter.

    A handler is any object with `async handle(event)` and
    `async expire()`. Handlers never expire unless an idle timeout is
    configured; an abandoned session otherwise keeps its channel forever.
    """

    def __init__(self, transport, idle_timeout: Optional[float] = None):
        self.transport = transport
        self.idle_timeout = idle_timeout

        self._handlers: Dict[int, Any] = {}
        self._locked: Set[int] = set()
        self._channel_locks: Dict[int, asyncio.Lock] = {}
        self._waiting: Dict[int, int] = {}
        self._timers: Dict[int, asyncio.Task] = {}

    # -------------------------------------------------------------------------
    # Channel lock
    # -------------------------------------------------------------------------

    def acquire(self, channel_id: int) -> None:
        self._locked.add(channel_id)

    def release(self, channel_id: int) -> None:
        self._locked.discard(channel_id)
        self._prune(channel_id)

    def is_locked(self, channel_id: int) -> bool:
        return channel_id in self._locked

    # -------------------------------------------------------------------------
    # Handler registration
    # -------------------------------------------------------------------------

    def register(self, channel_id: int, handler: Any) -> None:
        current = self._handlers.get(channel_id)
        if current is not None and current is not handler:
            raise SessionConflict(f"Channel {channel_id} already has an active session.")
        self._handlers[channel_id] = handler
        self._arm_timer(channel_id, handler)
        logger.debug("Registered %s for channel %s", type(handler).__name__, channel_id)

    def deregister(self, channel_id: int, handler: Any) -> None:
        if self._handlers.get(channel_id) is not handler:
            return
        del self._handlers[channel_id]
        self._disarm_timer(channel_id)
        self._prune(channel_id)
        logger.debug("Deregistered %s from channel %s", type(handler).__name__, channel_id)

    def active_session_for(self, channel_id: int) -> Optional[Any]:
        return self._handlers.get(channel_id)

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    async def dispatch(self, event: InboundEvent) -> bool:
        """
        Route one inbound event.

        Returns True when a handler received it. Non-bot messages in a
        locked channel are deleted and never reach the handler.
        """
        channel_id = event.channel_id
        async with self._serialized(channel_id):
            if isinstance(event, MessageReceived) and not event.is_bot and channel_id in self._locked:
                await self.transport.delete_message(event.message)
                return False

            handler = self._handlers.get(channel_id)
            if handler is None:
                return False

            self._arm_timer(channel_id, handler)
            await handler.handle(event)
            return True

    # -------------------------------------------------------------------------
    # Per-channel ordering
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def _serialized(self, channel_id: int) -> AsyncIterator[None]:
        """Hold the channel's event lock. Locks exist only while a channel is in use."""
        lock = self._channel_locks.setdefault(channel_id, asyncio.Lock())
        self._waiting[channel_id] = self._waiting.get(channel_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiting[channel_id] -= 1
            if not self._waiting[channel_id]:
                del self._waiting[channel_id]
            self._prune(channel_id)

    def _prune(self, channel_id: int) -> None:
        if (
            channel_id in self._waiting
            or channel_id in self._handlers
            or channel_id in self._locked
        ):
            return
        self._channel_locks.pop(channel_id, None)

    # -------------------------------------------------------------------------
    # Idle timeout (off by default)
    # -------------------------------------------------------------------------

    def _arm_timer(self, channel_id: int, handler: Any) -> None:
        if self.idle_timeout is None:
            return
        self._disarm_timer(channel_id)
        self._timers[channel_id] = asyncio.create_task(self._expire_later(channel_id, handler))

    def _disarm_timer(self, channel_id: int) -> None:
        timer = self._timers.pop(channel_id, None)
        # expire() deregisters from inside the timer task itself
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()

    async def _expire_later(self, channel_id: int, handler: Any) -> None:
        await asyncio.sleep(self.idle_timeout)
        async with self._serialized(channel_id):
            if self._handlers.get(channel_id) is not handler:
                return
            logger.info("Session in channel %s idle for %ss, expiring", channel_id, self.idle_timeout)
            await handler.expire()
            # handlers that do not deregister themselves are dropped here
            self.deregister(channel_id, handler)
