"""Transport capability protocol and the connection handle it operates on.

The core never talks to SSH directly. It drives a ``TransportCapability``,
which opens channels, dispatches exec requests, acknowledges received data
and closes channels, and which posts channel events on the connection's
event channel. ``sshexec.transport.AsyncSSHTransport`` is the real one; tests
use an in-memory double.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from sshexec.errors import ChannelOpenError, ExecError, TransportError
from sshexec.mailbox import Mailbox
from sshexec.types import ChannelId, ExecStatus


@dataclass(eq=False)
class Connection:
    """An established transport session, shared by any number of executions.

    Attributes:
        handle: The underlying session object (opaque to the core).
        name: Label used in log records.
        events: Event channel every transport event for this connection goes to.
        channels: Transport-owned table of live channels.
    """

    handle: Any
    name: str = "connection"
    events: Mailbox = field(default_factory=Mailbox)
    channels: dict[ChannelId, Any] = field(default_factory=dict, repr=False)
    closed: bool = False

    _ids: Iterator[int] = field(default_factory=lambda: itertools.count(1), repr=False)

    def next_channel_id(self) -> ChannelId:
        return next(self._ids)

    async def close(self, timeout: float = 5.0) -> None:
        """Close the underlying session and wait up to ``timeout`` seconds for it to finish."""
        if self.closed:
            return
        self.closed = True
        if callable(close := getattr(self.handle, "close", None)):
            close()
        if callable(wait_closed := getattr(self.handle, "wait_closed", None)):
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(wait_closed(), timeout=timeout)


@runtime_checkable
class TransportCapability(Protocol):
    """Channel-level operations an execution needs from a transport.

    Failures are returned, never raised.
    """

    async def open_channel(
        self,
        connection: Connection,
        timeout: float,
    ) -> ChannelId | ChannelOpenError:
        """Acquire a new channel on ``connection`` within ``timeout`` seconds."""
        ...

    async def exec(
        self,
        connection: Connection,
        channel: ChannelId,
        command: str,
        timeout: float,
    ) -> ExecStatus | ExecError:
        """Request execution of ``command`` on ``channel``.

        Returns:
            ``ExecStatus.SUCCESS`` once the command runs, ``ExecStatus.FAILURE``
            if the remote side refused it, or the transport error.
        """
        ...

    async def adjust_window(
        self,
        connection: Connection,
        channel: ChannelId,
        byte_count: int,
    ) -> TransportError | None:
        """Acknowledge ``byte_count`` received bytes so the peer keeps sending."""
        ...

    async def close(
        self,
        connection: Connection,
        channel: ChannelId,
    ) -> TransportError | None:
        """Release ``channel``."""
        ...
