"""The vocabulary of sshexec: transport events, results and stream elements.

Transport events are what a transport posts on a connection's event channel.
Results and stream elements are what callers get back from ``run`` and
``stream``. Every type is an immutable value object, so the unions below are
meant to be consumed with ``match``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from sshexec.errors import ExecutionError

type ChannelId = int
type StreamTag = Literal["stdout", "stderr"]


class ExecStatus(Enum):
    """Outcome of an exec request that reached the remote side."""

    SUCCESS = "success"
    FAILURE = "failure"


# =============================================================================
# Transport Events
# =============================================================================


@dataclass(frozen=True, slots=True)
class Data:
    """A chunk of command output on one of the two streams."""

    channel: ChannelId
    stream: StreamTag
    data: bytes


@dataclass(frozen=True, slots=True)
class Eof:
    """Remote side will send no more output."""

    channel: ChannelId


@dataclass(frozen=True, slots=True)
class ExitSignal:
    """Remote command was terminated by a signal."""

    channel: ChannelId
    signal: str
    core_dumped: bool = False
    message: str = ""


@dataclass(frozen=True, slots=True)
class ExitStatus:
    """Remote command exited with ``code``."""

    channel: ChannelId
    code: int


@dataclass(frozen=True, slots=True)
class Closed:
    """Channel was closed by the remote side."""

    channel: ChannelId


@dataclass(frozen=True, slots=True)
class Error:
    """Transport failure on the channel. ``reason`` is passed on untouched."""

    channel: ChannelId
    reason: object


type TransportEvent = Data | Eof | ExitSignal | ExitStatus | Closed | Error


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Combined output: stdout followed by stderr, plus the exit status."""

    output: bytes
    exit_status: int


@dataclass(frozen=True, slots=True)
class SeparatedResult:
    """Output kept per stream, plus the exit status."""

    stdout: bytes
    stderr: bytes
    exit_status: int


type RunResult = CommandResult | SeparatedResult | ExecutionError


# =============================================================================
# Stream Elements
# =============================================================================


@dataclass(frozen=True, slots=True)
class Stdout:
    data: bytes


@dataclass(frozen=True, slots=True)
class Stderr:
    data: bytes


@dataclass(frozen=True, slots=True)
class Status:
    code: int


type StreamElement = Stdout | Stderr | Status | ExecutionError
