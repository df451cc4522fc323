"""
Unit tests for task parameter DTOs.
"""

import pytest

from orkestra_executors.application.dto import (
    CommandRunParams,
    ContainerRunParams,
    FileReadParams,
    RemoteShellParams,
    decode_params,
    format_value,
)
from orkestra_executors.domain.errors import ValidationError
from orkestra_executors.domain.value_objects import TaskDescriptor


class TestDecodeParams:
    """Tests for decode_params."""

    def test_missing_required_parameter(self):
        with pytest.raises(ValidationError) as exc_info:
            decode_params(CommandRunParams, "cmd/run", {})

        assert "run" in exc_info.value.message
        assert exc_info.value.details["operation"] == "cmd/run"

    def test_empty_required_parameter(self):
        with pytest.raises(ValidationError):
            decode_params(FileReadParams, "fs/read", {"path": ""})

    def test_wrong_type(self):
        with pytest.raises(ValidationError):
            decode_params(CommandRunParams, "cmd/run", {"run": 42})

    def test_decodes_frozen_descriptor_parameters(self):
        descriptor = TaskDescriptor(
            operation="docker/run",
            parameters={"image": "alpine", "args": ["hello", 1], "env": {"A": 1}},
        )

        params = decode_params(ContainerRunParams, "docker/run", descriptor.parameters)

        assert params.cmd() == ["hello", "1"]
        assert params.env_list() == ["A=1"]

    def test_unknown_keys_are_ignored(self):
        params = decode_params(FileReadParams, "fs/read", {"path": "/tmp/x", "mode": "rb"})

        assert params.path == "/tmp/x"


class TestFormatValue:
    """Tests for format_value."""

    @pytest.mark.parametrize(
        "value,expected",
        [("x", "x"), (3, "3"), (1.5, "1.5"), (True, "true"), (False, "false"), (None, "")],
    )
    def test_format(self, value, expected):
        assert format_value(value) == expected


class TestCommandRunParams:
    """Tests for cmd/run parameters."""

    def test_defaults(self):
        params = CommandRunParams.model_validate({"run": "echo hi"})

        assert params.shell is None
        assert params.cwd is None
        assert params.env == {}

    def test_empty_shell_means_default(self):
        params = CommandRunParams.model_validate({"run": "echo hi", "shell": ""})

        assert params.shell is None

    def test_env_strings(self):
        params = CommandRunParams.model_validate(
            {"run": "env", "env": {"A": "2", "N": 5, "FLAG": True}}
        )

        assert params.env_strings() == {"A": "2", "N": "5", "FLAG": "true"}


class TestContainerRunParams:
    """Tests for docker/run parameters."""

    def test_cmd_command_then_args(self):
        params = ContainerRunParams.model_validate(
            {"image": "alpine", "command": "echo", "args": ["hello", 1, False]}
        )

        assert params.cmd() == ["echo", "hello", "1", "false"]

    def test_cmd_args_only(self):
        params = ContainerRunParams.model_validate({"image": "alpine", "args": ["-v"]})

        assert params.cmd() == ["-v"]

    def test_cmd_empty(self):
        params = ContainerRunParams.model_validate({"image": "alpine", "args": None})

        assert params.cmd() == []

    def test_env_list(self):
        params = ContainerRunParams.model_validate(
            {"image": "alpine", "env": {"A": "1", "B": 2}}
        )

        assert params.env_list() == ["A=1", "B=2"]

    def test_args_must_be_sequence(self):
        with pytest.raises(ValidationError):
            decode_params(ContainerRunParams, "docker/run", {"image": "alpine", "args": "x y"})


class TestRemoteShellParams:
    """Tests for ssh/run parameters."""

    BASE = {"host": "deploy@example.com", "run": "uptime", "key": "KEY"}

    def test_defaults(self):
        params = RemoteShellParams.model_validate(self.BASE)

        assert params.port == 22
        assert params.strict_host_key_checking is None
        assert params.known_hosts_file is None

    def test_port_from_string(self):
        params = RemoteShellParams.model_validate({**self.BASE, "port": "2222"})

        assert params.port == 2222

    def test_port_out_of_range(self):
        with pytest.raises(ValidationError):
            decode_params(RemoteShellParams, "ssh/run", {**self.BASE, "port": 70000})

    @pytest.mark.parametrize("raw,expected", [("true", True), ("false", False), (True, True)])
    def test_strict_host_key_checking(self, raw, expected):
        params = RemoteShellParams.model_validate({**self.BASE, "strict_host_key_checking": raw})

        assert params.strict_host_key_checking is expected

    def test_split_host(self):
        params = RemoteShellParams.model_validate(self.BASE)

        assert params.split_host() == ("deploy", "example.com")

    def test_split_host_on_first_at(self):
        params = RemoteShellParams.model_validate({**self.BASE, "host": "a@b@c"})

        assert params.split_host() == ("a", "b@c")

    @pytest.mark.parametrize("host", ["bob", "@example.com", "bob@"])
    def test_split_host_malformed(self, host):
        params = RemoteShellParams.model_validate({**self.BASE, "host": host})

        assert params.split_host() is None
