"""
Task Parameter DTOs

Typed views of the loosely-typed parameter mapping of a task descriptor.
Each handler decodes its parameters once at entry; backend logic only ever
sees these models.
"""

from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from orkestra_executors.domain.errors import ValidationError

ParamsT = TypeVar("ParamsT", bound=BaseModel)


def format_value(value: Any) -> str:
    """Render a parameter value the way it appears in an environment or argv."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def decode_params(
    model: Type[ParamsT],
    operation: str,
    parameters: Mapping[str, Any],
) -> ParamsT:
    """
    Decode and validate a parameter mapping.

    Args:
        model: Parameter model for the operation
        operation: Operation id, used in the error message
        parameters: Raw parameters from the task descriptor

    Returns:
        Validated, immutable parameter model

    Raises:
        ValidationError: If a required parameter is missing or malformed
    """
    try:
        return model.model_validate(dict(parameters))
    except pydantic.ValidationError as exc:
        problems = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"]) or "parameters"
            problems.append(f"{location}: {error['msg']}")
        raise ValidationError(
            f"Invalid parameters for {operation}: " + "; ".join(problems),
            {"operation": operation, "errors": problems},
        ) from exc


class _TaskParams(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class CommandRunParams(_TaskParams):
    """Parameters of ``cmd/run``."""

    run: str = Field(..., min_length=1, description="Command line passed to the shell")
    shell: Optional[str] = Field(default=None, description="Shell executable")
    cwd: Optional[str] = Field(default=None, description="Working directory")
    env: Dict[str, Any] = Field(default_factory=dict, description="Extra environment")

    @field_validator("shell", "cwd", mode="before")
    @classmethod
    def empty_as_unset(cls, v):
        return v or None

    @field_validator("env", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return {} if v is None else v

    def env_strings(self) -> Dict[str, str]:
        return {str(key): format_value(value) for key, value in self.env.items()}


class ContainerRunParams(_TaskParams):
    """Parameters of ``docker/run``."""

    image: str = Field(..., min_length=1, description="Image reference")
    command: Optional[str] = Field(default=None, description="Container command")
    args: List[Any] = Field(default_factory=list, description="Arguments after command")
    env: Dict[str, Any] = Field(default_factory=dict, description="Container environment")

    @field_validator("args", "env", mode="before")
    @classmethod
    def none_as_empty(cls, v, info):
        if v is None:
            return [] if info.field_name == "args" else {}
        return v

    def cmd(self) -> List[str]:
        cmd = [self.command] if self.command is not None else []
        cmd.extend(format_value(arg) for arg in self.args)
        return cmd

    def env_list(self) -> List[str]:
        return [f"{key}={format_value(value)}" for key, value in self.env.items()]


class RemoteShellParams(_TaskParams):
    """Parameters of ``ssh/run``."""

    host: str = Field(..., min_length=1, description="user@hostname")
    run: str = Field(..., min_length=1, description="Remote command")
    key: str = Field(..., min_length=1, description="Private key text")
    port: int = Field(default=22, ge=1, le=65535, description="SSH port")
    strict_host_key_checking: Optional[bool] = Field(default=None)
    known_hosts_file: Optional[str] = Field(default=None)

    @field_validator("port", "strict_host_key_checking", "known_hosts_file", mode="before")
    @classmethod
    def empty_as_unset(cls, v, info):
        if v is None or v == "":
            return 22 if info.field_name == "port" else None
        return v

    def split_host(self) -> Optional[tuple]:
        """
        Split ``user@hostname`` on the first ``@``.

        Returns:
            (user, hostname), or None if either part is empty
        """
        user, sep, hostname = self.host.partition("@")
        if not sep or not user or not hostname:
            return None
        return user, hostname


class FileReadParams(_TaskParams):
    """Parameters of ``fs/read``."""

    path: str = Field(..., min_length=1, description="File path")
