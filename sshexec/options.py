"""Execution options and their TOML-based configuration.

Loads ~/.sshexec/defaults.toml (global) and sshexec.toml (project), merges
them, and maps the ``[exec]`` table onto ``ExecutionOptions``.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sshexec.protocols import TransportCapability

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".sshexec" / "defaults.toml"
PROJECT_CONFIG_NAME = "sshexec.toml"

DEFAULT_CHANNEL_OPEN_TIMEOUT = 5.0
DEFAULT_EXEC_TIMEOUT = 5.0


@dataclass(frozen=True, slots=True)
class ExecutionOptions:
    """Settings for a single command execution.

    Attributes:
        channel_open_timeout: Seconds to wait for a channel. Defaults to 5.
        exec_timeout: Seconds to wait for the exec reply and for each event
            afterwards. Defaults to 5.
        separate_streams: Keep stdout and stderr apart in ``run`` results.
        transport: Transport capability. None uses ``AsyncSSHTransport``.
    """

    channel_open_timeout: float = DEFAULT_CHANNEL_OPEN_TIMEOUT
    exec_timeout: float = DEFAULT_EXEC_TIMEOUT
    separate_streams: bool = False
    transport: TransportCapability | None = None

    def __post_init__(self) -> None:
        if self.channel_open_timeout <= 0:
            raise ValueError(f"channel_open_timeout must be positive, got {self.channel_open_timeout}")
        if self.exec_timeout <= 0:
            raise ValueError(f"exec_timeout must be positive, got {self.exec_timeout}")

    def resolve_transport(self) -> TransportCapability:
        if self.transport is not None:
            return self.transport
        from sshexec.transport import default_transport

        return default_transport()


_FILE_KEYS = frozenset(f.name for f in fields(ExecutionOptions)) - {"transport"}


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    with path.open("rb") as f:
        return tomllib.load(f)


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("exec", {})
    return merged


def options_from_config(raw: RawConfig, **overrides: Any) -> ExecutionOptions:
    """Build options from a loaded config's ``[exec]`` table.

    Keyword overrides take precedence. ``transport`` can only be given as an
    override.

    Raises:
        ValueError: On unknown keys or invalid values.
    """
    table = raw.get("exec", {})
    if not isinstance(table, dict):
        raise ValueError(f"[exec] must be a table, got {type(table).__name__}")

    unknown = set(table) - _FILE_KEYS
    if unknown:
        raise ValueError(f"Unknown [exec] keys: {', '.join(sorted(unknown))}")

    unknown = set(overrides) - _FILE_KEYS - {"transport"}
    if unknown:
        raise ValueError(f"Unknown option overrides: {', '.join(sorted(unknown))}")

    values: dict[str, Any] = {}
    for key in ("channel_open_timeout", "exec_timeout"):
        if key in table:
            if isinstance(table[key], bool) or not isinstance(table[key], int | float):
                raise ValueError(f"{key} must be a number of seconds, got {table[key]!r}")
            values[key] = float(table[key])
    if "separate_streams" in table:
        if not isinstance(table["separate_streams"], bool):
            raise ValueError("separate_streams must be a boolean")
        values["separate_streams"] = table["separate_streams"]

    return replace(ExecutionOptions(**values), **overrides)


def load_options(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
    **overrides: Any,
) -> ExecutionOptions:
    """Load options from the global and project config files.

    Example:
        >>> opts = load_options(separate_streams=True)
        >>> result = await run(conn, "uname -a", opts)
    """
    raw = load_config(project_dir=project_dir, global_path=global_path)
    return options_from_config(raw, **overrides)
