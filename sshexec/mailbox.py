"""Per-connection event channel with selective receive.

A transport posts every event for a connection here, whatever channel it
belongs to. Each consumer then takes only the events addressed to its own
channel; everything else stays queued, in order, for the consumer that owns
it. This lets several executions share one connection without a central
dispatcher.
"""

from __future__ import annotations

import asyncio
from collections import deque

from loguru import logger

from sshexec.types import ChannelId, TransportEvent


class Mailbox:
    """Ordered event queue for one connection.

    ``post`` is synchronous so it can be called from transport callbacks
    running on the event loop. ``receive`` suspends until an event for the
    requested channel is available or the deadline passes.

    Example:
        >>> box = Mailbox()
        >>> box.post(ExitStatus(channel=1, code=0))
        >>> await box.receive(1, timeout=5.0)
        ExitStatus(channel=1, code=0)
    """

    __slots__ = ("_pending", "_waiters")

    def __init__(self) -> None:
        self._pending: deque[TransportEvent] = deque()
        self._waiters: set[asyncio.Future[None]] = set()

    def __len__(self) -> int:
        return len(self._pending)

    def post(self, event: TransportEvent) -> None:
        self._pending.append(event)
        for waiter in self._waiters:
            if not waiter.done():
                waiter.set_result(None)

    def pending(self, channel: ChannelId) -> int:
        """Number of queued events addressed to ``channel``."""
        return sum(1 for e in self._pending if e.channel == channel)

    def discard(self, channel: ChannelId) -> int:
        """Drop every queued event for ``channel``. Returns how many were dropped."""
        kept = deque(e for e in self._pending if e.channel != channel)
        dropped = len(self._pending) - len(kept)
        self._pending = kept
        if dropped:
            logger.trace("Discarded {n} stale events for channel {ch}", n=dropped, ch=channel)
        return dropped

    def _take(self, channel: ChannelId) -> TransportEvent | None:
        for i, event in enumerate(self._pending):
            if event.channel == channel:
                del self._pending[i]
                return event
        return None

    async def receive(self, channel: ChannelId, timeout: float) -> TransportEvent:
        """Take the oldest event for ``channel``.

        Raises:
            TimeoutError: If nothing for ``channel`` arrives within ``timeout`` seconds.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            if (event := self._take(channel)) is not None:
                return event

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise TimeoutError(f"No event for channel {channel} within {timeout}s")

            waiter: asyncio.Future[None] = loop.create_future()
            self._waiters.add(waiter)
            try:
                await asyncio.wait_for(waiter, timeout=remaining)
            except TimeoutError:
                continue
            finally:
                self._waiters.discard(waiter)
