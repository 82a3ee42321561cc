"""Event demultiplexer: turns raw channel events into accumulator state.

``apply_event`` is the pure step function shared by ``run`` and ``stream``;
``next_event`` adds the waiting, the flow-control acknowledgment and the
error short-circuits around it.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace

from loguru import logger

from sshexec.errors import Timeout, TransportError
from sshexec.protocols import Connection, TransportCapability
from sshexec.types import (
    ChannelId,
    Closed,
    Data,
    Eof,
    Error,
    ExitSignal,
    ExitStatus,
    TransportEvent,
)


@dataclass(frozen=True, slots=True)
class AccumulatorState:
    """Output collected so far for one channel."""

    stdout: bytes = b""
    stderr: bytes = b""
    exit_status: int | None = None
    closed: bool = False

    @property
    def has_output(self) -> bool:
        return bool(self.stdout or self.stderr)


EMPTY_STATE = AccumulatorState()


def is_complete(state: AccumulatorState) -> bool:
    """Exit status seen and channel closed, in whatever order."""
    return state.exit_status is not None and state.closed


def apply_event(state: AccumulatorState, event: TransportEvent) -> AccumulatorState | TransportError:
    match event:
        case Data(stream="stdout", data=data):
            return replace(state, stdout=state.stdout + data)
        case Data(stream="stderr", data=data):
            return replace(state, stderr=state.stderr + data)
        case Eof() | ExitSignal():
            return state
        case ExitStatus(code=code):
            return replace(state, exit_status=code)
        case Closed():
            return replace(state, closed=True)
        case Error(reason=reason):
            return TransportError(reason)
        case _:
            raise TypeError(f"Unknown transport event: {event!r}")


async def next_event(
    connection: Connection,
    channel: ChannelId,
    timeout: float,
    state: AccumulatorState,
    transport: TransportCapability,
) -> tuple[TransportEvent, AccumulatorState] | Timeout | TransportError:
    """Wait for the next event on ``channel`` and fold it into ``state``.

    Data is acknowledged with ``adjust_window`` before it is folded in.

    Returns:
        The event with the updated state, ``Timeout`` if nothing arrived in
        ``timeout`` seconds, or a ``TransportError`` for an error event or a
        failed acknowledgment.
    """
    loop = asyncio.get_running_loop()
    started = loop.time()

    try:
        event = await connection.events.receive(channel, timeout)
    except TimeoutError:
        elapsed = loop.time() - started
        logger.debug("Channel {ch}: no event after {elapsed:.3f}s", ch=channel, elapsed=elapsed)
        return Timeout(elapsed)

    logger.trace("Channel {ch}: {event}", ch=channel, event=type(event).__name__)

    if isinstance(event, Data):
        if (err := await transport.adjust_window(connection, channel, len(event.data))) is not None:
            logger.debug("Channel {ch}: window adjust failed: {err}", ch=channel, err=err)
            return err

    match apply_event(state, event):
        case TransportError() as err:
            logger.debug("Channel {ch}: {err}", ch=channel, err=err)
            return err
        case new_state:
            return event, new_state
