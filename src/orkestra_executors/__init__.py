"""
Orkestra Executors

Pluggable task executors for the Orkestra workflow engine:
- cmd/run: local shell commands
- docker/run: ephemeral Docker containers
- ssh/run: remote commands over SSH
- fs/read: local file reads
"""

__version__ = "0.1.0"

from orkestra_executors.domain.errors import ExecutorError, NonZeroExitError
from orkestra_executors.domain.value_objects import (
    ExecutionContext,
    TaskDescriptor,
    TaskResult,
)
from orkestra_executors.application.services import BackendRegistry, build_default_registry
from orkestra_executors.infrastructure.backends import (
    CommandExecutor,
    ContainerExecutor,
    FileReadExecutor,
    RemoteShellExecutor,
)

__all__ = [
    "ExecutorError",
    "NonZeroExitError",
    "ExecutionContext",
    "TaskDescriptor",
    "TaskResult",
    "BackendRegistry",
    "build_default_registry",
    "CommandExecutor",
    "ContainerExecutor",
    "FileReadExecutor",
    "RemoteShellExecutor",
]
