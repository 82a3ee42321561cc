from __future__ import annotations

from dataclasses import dataclass, field, replace

import pytest

from sshexec import (
    ChannelOpenError,
    Closed,
    Connection,
    Data,
    Eof,
    ExecError,
    ExecStatus,
    ExecutionOptions,
    ExitStatus,
    TransportError,
    TransportEvent,
)

# Placeholder channel for scripted events; rewritten to the real id on exec.
ANY = 0


def stdout(data: bytes) -> Data:
    return Data(ANY, "stdout", data)


def stderr(data: bytes) -> Data:
    return Data(ANY, "stderr", data)


def regular_sequence(output: bytes, status: int) -> list[TransportEvent]:
    return [stdout(output), Eof(ANY), ExitStatus(ANY, status), Closed(ANY)]


def separated_sequence(out: bytes, err: bytes, status: int = 2) -> list[TransportEvent]:
    return [stdout(out), stderr(err), Eof(ANY), ExitStatus(ANY, status), Closed(ANY)]


@dataclass
class ScriptedTransport:
    """In-memory transport that replays a script once the command is dispatched."""

    script: list[TransportEvent] = field(default_factory=list)
    open_result: ChannelOpenError | None = None
    exec_result: ExecStatus | ExecError = ExecStatus.SUCCESS
    adjust_result: TransportError | None = None
    close_result: TransportError | None = None

    opened: list[int] = field(default_factory=list)
    executed: list[tuple[int, str]] = field(default_factory=list)
    adjusted: list[tuple[int, int]] = field(default_factory=list)
    closed: list[int] = field(default_factory=list)

    async def open_channel(self, connection: Connection, timeout: float) -> int | ChannelOpenError:
        if self.open_result is not None:
            return self.open_result
        channel = connection.next_channel_id()
        self.opened.append(channel)
        return channel

    async def exec(
        self, connection: Connection, channel: int, command: str, timeout: float,
    ) -> ExecStatus | ExecError:
        self.executed.append((channel, command))
        if self.exec_result is ExecStatus.SUCCESS:
            for event in self.script:
                connection.events.post(replace(event, channel=channel))
        return self.exec_result

    async def adjust_window(
        self, connection: Connection, channel: int, byte_count: int,
    ) -> TransportError | None:
        self.adjusted.append((channel, byte_count))
        return self.adjust_result

    async def close(self, connection: Connection, channel: int) -> TransportError | None:
        self.closed.append(channel)
        return self.close_result

    def channel_for(self, command: str) -> int:
        return next(ch for ch, c in self.executed if c == command)


@pytest.fixture
def connection() -> Connection:
    return Connection(handle="mocked", name="mocked")


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def options(transport: ScriptedTransport) -> ExecutionOptions:
    return ExecutionOptions(channel_open_timeout=5.0, exec_timeout=1.0, transport=transport)
