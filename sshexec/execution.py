"""Blocking execution: open a channel, exec, and collect everything.

Example:
    >>> conn = await connect("10.0.0.1", username="ubuntu")
    >>> await run(conn, "uname -a")
    CommandResult(output=b'Linux ...\\n', exit_status=0)
    >>> await cmd(conn, "hostname")
    b'box\\n'
"""

from __future__ import annotations

from loguru import logger

from sshexec.demux import EMPTY_STATE, AccumulatorState, is_complete, next_event
from sshexec.errors import ChannelOpenError, CommandError, ExecError, ExecFailure, ExecutionError
from sshexec.options import ExecutionOptions
from sshexec.protocols import Connection, TransportCapability
from sshexec.types import ChannelId, CommandResult, ExecStatus, RunResult, SeparatedResult


async def open_channel(
    connection: Connection,
    timeout: float,
    transport: TransportCapability,
) -> ChannelId | ChannelOpenError:
    """Get a channel from the transport. Errors come back exactly as the transport reported them."""
    channel = await transport.open_channel(connection, timeout)
    if not isinstance(channel, ExecutionError):
        logger.debug("{conn}: opened channel {ch}", conn=connection.name, ch=channel)
    return channel


async def exec_command(
    connection: Connection,
    channel: ChannelId,
    command: str,
    timeout: float,
    transport: TransportCapability,
) -> ChannelId | ExecutionError:
    """Dispatch ``command`` on ``channel``.

    Returns:
        The channel, ready to produce events. ``ExecFailure`` if the remote
        side refused the command; any other transport error unchanged.
    """
    match await transport.exec(connection, channel, command, timeout):
        case ExecStatus.SUCCESS:
            logger.debug("Channel {ch}: exec {cmd!r}", ch=channel, cmd=command)
            return channel
        case ExecStatus.FAILURE:
            logger.debug("Channel {ch}: exec {cmd!r} refused", ch=channel, cmd=command)
            return ExecFailure(command)
        case ExecutionError() as err:
            return err
        case other:
            return ExecError(other)


async def release_channel(
    connection: Connection,
    channel: ChannelId,
    transport: TransportCapability,
) -> None:
    """Close ``channel`` and forget whatever it left in the event channel."""
    err = await transport.close(connection, channel)
    if err is not None:
        logger.warning("Channel {ch}: close failed: {err}", ch=channel, err=err)
    connection.events.discard(channel)
    logger.debug("Channel {ch}: released", ch=channel)


def format_result(state: AccumulatorState, separate_streams: bool) -> CommandResult | SeparatedResult:
    """Build the final result from a completed state.

    In combined mode stderr is appended after stdout; arrival order between
    the two streams is not preserved.
    """
    if state.exit_status is None:
        raise ValueError(f"Cannot format an unfinished execution: {state!r}")
    if separate_streams:
        return SeparatedResult(state.stdout, state.stderr, state.exit_status)
    return CommandResult(state.stdout + state.stderr, state.exit_status)


async def accumulate(
    connection: Connection,
    channel: ChannelId,
    options: ExecutionOptions,
    transport: TransportCapability,
) -> RunResult:
    """Pull events for ``channel`` until the command has exited and the channel closed."""
    state = EMPTY_STATE
    while not is_complete(state):
        match await next_event(connection, channel, options.exec_timeout, state, transport):
            case ExecutionError() as err:
                return err
            case (_, new_state):
                state = new_state

    logger.debug(
        "Channel {ch}: completed with status {status} ({out} bytes stdout, {err} bytes stderr)",
        ch=channel, status=state.exit_status, out=len(state.stdout), err=len(state.stderr),
    )
    return format_result(state, options.separate_streams)


async def run(
    connection: Connection,
    command: str,
    options: ExecutionOptions | None = None,
) -> RunResult:
    """Execute ``command`` on ``connection`` and wait for it to finish.

    Args:
        connection: Established connection; it stays open afterwards.
        command: Command line to execute remotely.
        options: Timeouts, stream mode and transport. Defaults apply if None.

    Returns:
        ``CommandResult`` (stdout then stderr, combined) or, with
        ``separate_streams``, ``SeparatedResult``. Any failure is returned as
        an ``ExecutionError`` instead of being raised.
    """
    options = options or ExecutionOptions()
    transport = options.resolve_transport()

    with logger.contextualize(connection=connection.name, command=command):
        channel = await open_channel(connection, options.channel_open_timeout, transport)
        if isinstance(channel, ExecutionError):
            logger.debug("{conn}: {err}", conn=connection.name, err=channel)
            return channel

        with logger.contextualize(channel=channel):
            try:
                ready = await exec_command(connection, channel, command, options.exec_timeout, transport)
                if isinstance(ready, ExecutionError):
                    return ready
                return await accumulate(connection, ready, options, transport)
            finally:
                await release_channel(connection, channel, transport)


async def cmd(
    connection: Connection,
    command: str,
    options: ExecutionOptions | None = None,
) -> bytes | tuple[bytes, bytes]:
    """Run ``command`` and return its output, ignoring the exit status.

    Returns ``output`` or, with ``separate_streams``, ``(stdout, stderr)``.

    Raises:
        CommandError: For any error ``run`` returns, with its repr as message.
    """
    match await run(connection, command, options):
        case CommandResult(output=output):
            return output
        case SeparatedResult(stdout=stdout, stderr=stderr):
            return stdout, stderr
        case err:
            raise CommandError(repr(err)) from err
