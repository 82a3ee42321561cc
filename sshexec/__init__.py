"""sshexec - Run commands over an established SSH connection.

Example:

    from sshexec import connect, run, cmd, stream, ExecutionOptions

    conn = await connect("10.0.0.1", username="ubuntu")

    result = await run(conn, "ls -la")
    output = await cmd(conn, "hostname")

    async with stream(conn, "tail -n 20 app.log") as events:
        async for event in events:
            print(event)
"""

from loguru import logger

from sshexec.demux import AccumulatorState, apply_event, is_complete, next_event
from sshexec.errors import (
    ChannelOpenError,
    CommandError,
    ExecError,
    ExecFailure,
    ExecutionError,
    Timeout,
    TransportError,
)
from sshexec.execution import cmd, exec_command, open_channel, run
from sshexec.logging import LogConfig, setup_logging, teardown_logging
from sshexec.mailbox import Mailbox
from sshexec.options import ExecutionOptions, load_options
from sshexec.protocols import Connection, TransportCapability
from sshexec.streaming import CommandStream, stream
from sshexec.transport import AsyncSSHTransport, connect
from sshexec.types import (
    ChannelId,
    Closed,
    CommandResult,
    Data,
    Eof,
    Error,
    ExecStatus,
    ExitSignal,
    ExitStatus,
    RunResult,
    SeparatedResult,
    Status,
    Stderr,
    Stdout,
    StreamElement,
    TransportEvent,
)

# Library behavior: silent unless setup_logging() is called
logger.disable("sshexec")

__version__ = "2.3.0"

__all__ = [
    # Operations
    "run",
    "cmd",
    "stream",
    "connect",
    "open_channel",
    "exec_command",
    "next_event",
    "apply_event",
    "is_complete",
    # Connection & transport
    "Connection",
    "TransportCapability",
    "AsyncSSHTransport",
    "Mailbox",
    "ChannelId",
    # Options
    "ExecutionOptions",
    "load_options",
    # Events
    "TransportEvent",
    "Data",
    "Eof",
    "ExitSignal",
    "ExitStatus",
    "Closed",
    "Error",
    "ExecStatus",
    # Results
    "AccumulatorState",
    "CommandStream",
    "CommandResult",
    "SeparatedResult",
    "RunResult",
    "Stdout",
    "Stderr",
    "Status",
    "StreamElement",
    # Errors
    "ExecutionError",
    "ChannelOpenError",
    "ExecFailure",
    "ExecError",
    "TransportError",
    "Timeout",
    "CommandError",
    # Logging
    "LogConfig",
    "setup_logging",
    "teardown_logging",
]
