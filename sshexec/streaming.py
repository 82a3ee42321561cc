"""Lazy execution: one typed element per pull.

Example:
    >>> async with stream(conn, "tail -n 100 /var/log/syslog") as events:
    ...     async for event in events:
    ...         match event:
    ...             case Stdout(data=chunk):
    ...                 handle_output(chunk)
    ...             case Stderr(data=chunk):
    ...                 handle_error(chunk)
    ...             case Status(code=code):
    ...                 handle_exit(code)
    ...             case ExecutionError() as err:
    ...                 handle_failure(err)

Chunks arrive as the transport delivers them; stdout and stderr chunks are
interleaved in arrival order, not split into lines.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import replace
from enum import Enum, auto

from loguru import logger

from sshexec.demux import EMPTY_STATE, is_complete, next_event
from sshexec.errors import ExecutionError
from sshexec.execution import exec_command, open_channel, release_channel
from sshexec.options import ExecutionOptions
from sshexec.protocols import Connection, TransportCapability
from sshexec.types import ChannelId, Data, ExitStatus, Status, Stderr, Stdout, StreamElement


class _Phase(Enum):
    PENDING = auto()
    READY = auto()
    HALT_NEXT = auto()
    HALTED = auto()


class CommandStream:
    """Async iterator over the events of one remote command.

    The channel is opened and the command dispatched on the first pull.
    Errors, including a failed start, are yielded as the last element rather
    than raised. The channel is closed exactly once: when the sequence is
    exhausted, on the pull after an error element, on ``aclose``, or when an
    abandoned stream is finalized by the event loop.
    """

    __slots__ = (
        "_connection",
        "_command",
        "_options",
        "_transport",
        "_channel",
        "_phase",
        "_released",
        "_events",
    )

    def __init__(
        self,
        connection: Connection,
        command: str,
        options: ExecutionOptions,
        transport: TransportCapability,
    ) -> None:
        self._connection = connection
        self._command = command
        self._options = options
        self._transport = transport
        self._channel: ChannelId | None = None
        self._phase = _Phase.PENDING
        self._released = False
        self._events: AsyncGenerator[StreamElement, None] = self._run()

    @property
    def channel(self) -> ChannelId | None:
        return self._channel

    @property
    def halted(self) -> bool:
        return self._phase is _Phase.HALTED

    def __aiter__(self) -> CommandStream:
        return self

    async def __aenter__(self) -> CommandStream:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    async def __anext__(self) -> StreamElement:
        return await anext(self._events)

    async def aclose(self) -> None:
        """Stop the sequence and release the channel. Safe to call repeatedly."""
        await self._events.aclose()
        self._phase = _Phase.HALTED

    async def _run(self) -> AsyncGenerator[StreamElement, None]:
        channel = await open_channel(
            self._connection, self._options.channel_open_timeout, self._transport,
        )
        if isinstance(channel, ExecutionError):
            yield self._fail(channel)
            self._phase = _Phase.HALTED
            return

        self._channel = channel
        try:
            ready = await exec_command(
                self._connection, channel, self._command, self._options.exec_timeout, self._transport,
            )
            if isinstance(ready, ExecutionError):
                yield self._fail(ready)
                return

            self._phase = _Phase.READY
            # Only exit status and closed are carried between pulls; output is
            # handed out as soon as it arrives.
            state = EMPTY_STATE
            while not is_complete(state):
                match await next_event(
                    self._connection, channel, self._options.exec_timeout, state, self._transport,
                ):
                    case ExecutionError() as err:
                        yield self._fail(err)
                        return
                    case (event, new_state):
                        state = replace(new_state, stdout=b"", stderr=b"")
                        match event:
                            case Data(stream="stdout", data=data):
                                yield Stdout(data)
                            case Data(stream="stderr", data=data):
                                yield Stderr(data)
                            case ExitStatus(code=code):
                                yield Status(code)
        finally:
            self._phase = _Phase.HALTED
            await self._release(channel)

    async def _release(self, channel: ChannelId) -> None:
        if self._released:
            return
        self._released = True
        await release_channel(self._connection, channel, self._transport)

    def _fail(self, err: ExecutionError) -> ExecutionError:
        log = logger.bind(connection=self._connection.name, channel=self._channel, command=self._command)
        log.debug("Stream failed: {err}", err=err)
        self._phase = _Phase.HALT_NEXT
        return err


def stream(
    connection: Connection,
    command: str,
    options: ExecutionOptions | None = None,
) -> CommandStream:
    """Execute ``command`` lazily.

    Yields ``Stdout``, ``Stderr`` and ``Status`` elements, or a final
    ``ExecutionError``. Nothing is sent until the first element is requested.
    """
    options = options or ExecutionOptions()
    return CommandStream(connection, command, options, options.resolve_transport())
