"""Error values produced by an execution.

Core operations return these instead of raising them: ``run`` returns one as
its result and ``stream`` yields one as its final element. They are still
exceptions, so ``cmd`` can chain them and callers can ``raise`` them as-is.
"""

from __future__ import annotations


class ExecutionError(Exception):
    """Base class for everything that can end an execution early."""

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.args == other.args  # type: ignore[union-attr]

    def __hash__(self) -> int:
        return hash((type(self), self.args))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({', '.join(repr(a) for a in self.args)})"


class ChannelOpenError(ExecutionError):
    """Transport could not open a channel on the connection."""

    def __init__(self, reason: object) -> None:
        self.reason = reason
        super().__init__(reason)

    def __str__(self) -> str:
        return f"Could not open channel: {self.reason}"


class ExecFailure(ExecutionError):
    """Remote side refused to run the command."""

    def __init__(self, command: str) -> None:
        self.command = command
        super().__init__(command)

    def __str__(self) -> str:
        return f"Could not exec '{self.command}'!"


class ExecError(ExecutionError):
    """Transport failed while dispatching the exec request."""

    def __init__(self, reason: object) -> None:
        self.reason = reason
        super().__init__(reason)

    def __str__(self) -> str:
        return f"Exec request failed: {self.reason}"


class TransportError(ExecutionError):
    """Transport failure reported on the channel, or a failed acknowledgment."""

    def __init__(self, reason: object) -> None:
        self.reason = reason
        super().__init__(reason)

    def __str__(self) -> str:
        return f"Transport error: {self.reason}"


class Timeout(ExecutionError):
    """No event arrived for the channel within the exec timeout."""

    def __init__(self, elapsed: float) -> None:
        self.elapsed = elapsed
        super().__init__(elapsed)

    def __str__(self) -> str:
        return f"No response within {self.elapsed:.3f}s"


class CommandError(RuntimeError):
    """Raised by ``cmd`` for any execution error."""
