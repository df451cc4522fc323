"""
Executor Domain Layer

Task descriptors, execution context, result payloads and the error taxonomy
shared by every backend.
"""

from .errors import ExecutorError, NonZeroExitError, ValidationError
from .value_objects import (
    ContainerOutput,
    ExecutionContext,
    FileContent,
    ProcessOutput,
    TaskDescriptor,
    TaskResult,
)

__all__ = [
    "ExecutorError",
    "NonZeroExitError",
    "ValidationError",
    "ContainerOutput",
    "ExecutionContext",
    "FileContent",
    "ProcessOutput",
    "TaskDescriptor",
    "TaskResult",
]
