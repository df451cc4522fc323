"""
Task Value Objects

Immutable value objects describing one executor invocation and its outcome.
"""

import asyncio
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from orkestra_executors.domain.errors import ExecutorError, NonZeroExitError


def _freeze(value: Any) -> Any:
    """Copy mappings into read-only proxies and sequences into tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


@dataclass(frozen=True)
class TaskDescriptor:
    """
    What to run and how.

    Attributes:
        operation: Operation identifier (e.g. "cmd/run")
        parameters: Operation-specific parameters, read-only for the call
    """

    operation: str
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Freeze the parameter mapping, nested values included."""
        object.__setattr__(self, "parameters", _freeze(self.parameters or {}))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TaskDescriptor":
        """
        Build a descriptor from a node definition.

        Accepts the engine's node shape (``uses``/``with``) as well as
        ``operation``/``parameters``.
        """
        operation = data.get("uses", data.get("operation"))
        if not isinstance(operation, str) or not operation:
            raise ValueError("Task definition must name an operation ('uses')")
        parameters = data.get("with", data.get("parameters")) or {}
        if not isinstance(parameters, Mapping):
            raise ValueError("Task parameters ('with') must be a mapping")
        return cls(operation=operation, parameters=parameters)


@dataclass(frozen=True)
class ExecutionContext:
    """
    Cross-cutting data for one invocation.

    Attributes:
        secrets: Resolved secret values (already substituted into parameters)
        cancel_event: Set by the engine to abort the running operation
        execution_id: Correlation id for log lines
    """

    secrets: Mapping[str, str] = field(default_factory=dict)
    cancel_event: Optional[asyncio.Event] = None
    execution_id: Optional[str] = None

    @property
    def is_cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()


@dataclass(frozen=True)
class ProcessOutput:
    """Output of a process-like operation (cmd/run, ssh/run)."""

    stdout: str
    stderr: str
    exit_code: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exit_code": self.exit_code,
        }


@dataclass(frozen=True)
class ContainerOutput:
    """Output of a container run."""

    logs: str
    exit_code: int
    container_id: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "logs": self.logs,
            "exit_code": self.exit_code,
            "container_id": self.container_id,
        }


@dataclass(frozen=True)
class FileContent:
    """
    Content of a local file.

    Attributes:
        content: File bytes decoded as UTF-8
        size: Byte length of the file
    """

    content: str
    size: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"content": self.content, "size": self.size}


@dataclass
class TaskResult:
    """
    Uniform envelope for one invocation.

    Exactly one of success or failure is signalled: ``ok`` is true iff
    ``error`` is None. A non-zero exit keeps its diagnostic payload.
    """

    operation: str
    payload: Optional[Dict[str, Any]] = None
    error: Optional[ExecutorError] = None

    @classmethod
    def success(cls, operation: str, payload: Dict[str, Any]) -> "TaskResult":
        return cls(operation=operation, payload=payload)

    @classmethod
    def failure(cls, operation: str, error: ExecutorError) -> "TaskResult":
        payload = error.result if isinstance(error, NonZeroExitError) else None
        return cls(operation=operation, payload=payload, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "operation": self.operation,
            "ok": self.ok,
            "result": self.payload,
            "error": self.error.to_dict() if self.error else None,
        }
