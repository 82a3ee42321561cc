from pathlib import Path

import pytest

from sshexec import AsyncSSHTransport, ExecutionOptions, load_options
from sshexec.options import _deep_merge, load_config, options_from_config


class TestExecutionOptions:
    def test_defaults(self):
        opts = ExecutionOptions()
        assert opts.channel_open_timeout == 5.0
        assert opts.exec_timeout == 5.0
        assert opts.separate_streams is False
        assert opts.transport is None

    def test_default_transport_is_asyncssh(self):
        assert isinstance(ExecutionOptions().resolve_transport(), AsyncSSHTransport)

    def test_explicit_transport_wins(self, transport):
        assert ExecutionOptions(transport=transport).resolve_transport() is transport

    @pytest.mark.parametrize("field", ["channel_open_timeout", "exec_timeout"])
    def test_rejects_non_positive_timeouts(self, field):
        with pytest.raises(ValueError, match=field):
            ExecutionOptions(**{field: 0})

    def test_is_immutable(self):
        with pytest.raises(AttributeError):
            ExecutionOptions().exec_timeout = 1.0  # type: ignore[misc]


class TestDeepMerge:
    def test_nested_merge(self):
        base = {"exec": {"exec_timeout": 10, "separate_streams": True}}
        override = {"exec": {"exec_timeout": 20}}
        assert _deep_merge(base, override) == {"exec": {"exec_timeout": 20, "separate_streams": True}}

    def test_empty_override(self):
        assert _deep_merge({"a": 1}, {}) == {"a": 1}


class TestLoadConfig:
    def test_project_overrides_global(self, tmp_path: Path):
        global_toml = tmp_path / "defaults.toml"
        global_toml.write_text("[exec]\nexec_timeout = 30\nchannel_open_timeout = 10\n")
        project_dir = tmp_path / "project"
        project_dir.mkdir()
        (project_dir / "sshexec.toml").write_text("[exec]\nexec_timeout = 60\n")

        opts = load_options(project_dir=project_dir, global_path=global_toml)

        assert opts.exec_timeout == 60.0
        assert opts.channel_open_timeout == 10.0

    def test_no_files(self, tmp_path: Path):
        raw = load_config(project_dir=tmp_path, global_path=tmp_path / "missing.toml")
        assert raw == {"exec": {}}
        assert load_options(project_dir=tmp_path, global_path=tmp_path / "missing.toml") == ExecutionOptions()

    def test_overrides_win(self, tmp_path: Path, transport):
        (tmp_path / "sshexec.toml").write_text("[exec]\nseparate_streams = false\n")

        opts = load_options(
            project_dir=tmp_path,
            global_path=tmp_path / "missing.toml",
            separate_streams=True,
            transport=transport,
        )

        assert opts.separate_streams is True
        assert opts.transport is transport


class TestOptionsFromConfig:
    def test_unknown_key(self):
        with pytest.raises(ValueError, match="retries"):
            options_from_config({"exec": {"retries": 3}})

    def test_transport_not_allowed_in_file(self):
        with pytest.raises(ValueError, match="transport"):
            options_from_config({"exec": {"transport": "ssh"}})

    def test_unknown_override(self):
        with pytest.raises(ValueError, match="bogus"):
            options_from_config({}, bogus=1)

    def test_separate_streams_must_be_bool(self):
        with pytest.raises(ValueError, match="boolean"):
            options_from_config({"exec": {"separate_streams": "yes"}})

    def test_exec_must_be_table(self):
        with pytest.raises(ValueError, match="table"):
            options_from_config({"exec": 5})

    def test_negative_timeout_from_file(self):
        with pytest.raises(ValueError, match="exec_timeout"):
            options_from_config({"exec": {"exec_timeout": -1}})

    @pytest.mark.parametrize("value", [True, "30", [5]])
    def test_timeout_must_be_a_number(self, value):
        with pytest.raises(ValueError, match="exec_timeout must be a number"):
            options_from_config({"exec": {"exec_timeout": value}})

    def test_integer_timeout_from_file(self):
        assert options_from_config({"exec": {"channel_open_timeout": 10}}).channel_open_timeout == 10.0
