"""AsyncSSH-based transport capability.

Service class pattern: the transport itself is stateless; per-connection
state (live channels, the event channel) lives on the ``Connection``.

Each exec gets an ``SSHClientSession`` whose callbacks translate asyncssh
notifications into transport events on the connection's event channel.
Reading is paused after every delivered chunk and only resumed by
``adjust_window``, so the peer's window is replenished at the pace the
consumer acknowledges data.
"""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import asyncssh
from loguru import logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from sshexec.errors import ChannelOpenError, ExecError, TransportError
from sshexec.protocols import Connection
from sshexec.types import (
    ChannelId,
    Closed,
    Data,
    Eof,
    Error,
    ExecStatus,
    ExitSignal,
    ExitStatus,
    TransportEvent,
)

_RESERVED = object()


# =============================================================================
# Session Adapter
# =============================================================================


class ChannelSession(asyncssh.SSHClientSession[bytes]):
    """Posts the notifications of one asyncssh channel as transport events."""

    def __init__(self, connection: Connection, channel: ChannelId) -> None:
        self._connection = connection
        self._channel = channel
        self._chan: asyncssh.SSHClientChannel[bytes] | None = None

    def _post(self, event: TransportEvent) -> None:
        # Released channels must not leave events behind.
        if self._channel in self._connection.channels:
            self._connection.events.post(event)

    def connection_made(self, chan: asyncssh.SSHClientChannel[bytes]) -> None:
        self._chan = chan

    def data_received(self, data: bytes, datatype: int | None) -> None:
        stream = "stderr" if datatype == asyncssh.EXTENDED_DATA_STDERR else "stdout"
        self._post(Data(self._channel, stream, data))
        if self._chan is not None:
            self._chan.pause_reading()

    def eof_received(self) -> bool:
        self._post(Eof(self._channel))
        return False

    def exit_status_received(self, status: int) -> None:
        self._post(ExitStatus(self._channel, status))

    def exit_signal_received(
        self, signal: str, core_dumped: bool, msg: str, lang: str,
    ) -> None:
        self._post(ExitSignal(self._channel, signal, core_dumped, msg))

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is None:
            self._post(Closed(self._channel))
        else:
            self._post(Error(self._channel, exc))


# =============================================================================
# Transport
# =============================================================================


@dataclass(frozen=True, slots=True)
class AsyncSSHTransport:
    """Transport capability over an ``asyncssh.SSHClientConnection``.

    asyncssh opens the session channel and sends the exec request in a single
    call, so ``open_channel`` only reserves a channel id and ``exec`` does
    the network round trips.

    Attributes:
        env: Environment variables sent with every exec request.
        term_type: Request a pseudo-terminal of this type. None for no PTY.
    """

    env: dict[str, str] | None = None
    term_type: str | None = None

    async def open_channel(
        self,
        connection: Connection,
        timeout: float,
    ) -> ChannelId | ChannelOpenError:
        if connection.closed:
            return ChannelOpenError("connection closed")
        channel = connection.next_channel_id()
        connection.channels[channel] = _RESERVED
        return channel

    async def exec(
        self,
        connection: Connection,
        channel: ChannelId,
        command: str,
        timeout: float,
    ) -> ExecStatus | ExecError:
        if connection.channels.get(channel) is not _RESERVED:
            return ExecError(f"channel {channel} is not open")

        conn: asyncssh.SSHClientConnection = connection.handle
        kwargs: dict[str, Any] = {"encoding": None}
        if self.env:
            kwargs["env"] = self.env
        if self.term_type:
            kwargs["term_type"] = self.term_type

        try:
            chan, _ = await asyncio.wait_for(
                conn.create_session(
                    functools.partial(ChannelSession, connection, channel), command, **kwargs,
                ),
                timeout=timeout,
            )
        except asyncssh.ChannelOpenError as e:
            logger.debug("Channel {ch}: exec refused: {reason}", ch=channel, reason=e.reason)
            return ExecStatus.FAILURE
        except (TimeoutError, asyncssh.Error, OSError) as e:
            return ExecError(e)

        connection.channels[channel] = chan
        return ExecStatus.SUCCESS

    async def adjust_window(
        self,
        connection: Connection,
        channel: ChannelId,
        byte_count: int,
    ) -> TransportError | None:
        chan = connection.channels.get(channel)
        if chan is None or chan is _RESERVED:
            return TransportError(f"channel {channel} is not open")
        try:
            chan.resume_reading()
        except (asyncssh.Error, OSError) as e:
            return TransportError(e)
        return None

    async def close(
        self,
        connection: Connection,
        channel: ChannelId,
    ) -> TransportError | None:
        chan = connection.channels.pop(channel, None)
        if chan is None or chan is _RESERVED:
            return None
        try:
            chan.close()
        except (asyncssh.Error, OSError) as e:
            return TransportError(e)
        return None


@functools.cache
def default_transport() -> AsyncSSHTransport:
    return AsyncSSHTransport()


# =============================================================================
# Connection Helper
# =============================================================================


async def connect(
    host: str,
    *,
    port: int = 22,
    username: str | None = None,
    client_keys: Sequence[str] | None = None,
    known_hosts: Any = (),
    connect_timeout: float = 30.0,
    retry_max_attempts: int = 1,
    retry_delay: float = 2.0,
    **ssh_options: Any,
) -> Connection:
    """Open an SSH connection and wrap it for executions.

    Authentication and host-key checking are asyncssh's: ``client_keys``,
    ``known_hosts`` and any extra ``ssh_options`` go to ``asyncssh.connect``
    untouched. Connection errors are retried with a fixed delay.

    Example:
        >>> conn = await connect("10.0.0.1", username="ubuntu", retry_max_attempts=30)
        >>> await run(conn, "uptime")
        >>> await conn.close()
    """
    options: dict[str, Any] = {
        "port": port,
        "connect_timeout": connect_timeout,
        "known_hosts": known_hosts,
        **ssh_options,
    }
    if username is not None:
        options["username"] = username
    if client_keys is not None:
        options["client_keys"] = list(client_keys)

    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(retry_max_attempts),
        wait=wait_fixed(retry_delay),
        retry=retry_if_exception_type((OSError, asyncssh.DisconnectError)),
        reraise=True,
    ):
        with attempt:
            logger.debug(
                "SSH: connecting to {host}:{port} (attempt {n})",
                host=host, port=port, n=attempt.retry_state.attempt_number,
            )
            conn = await asyncssh.connect(host, **options)

    logger.debug("SSH: connected to {host}:{port}", host=host, port=port)
    return Connection(handle=conn, name=f"{host}:{port}")
