"""
Infrastructure Layer

Execution backends, configuration and logging.
"""

from .backends import (
    CommandExecutor,
    ContainerExecutor,
    FileReadExecutor,
    RemoteShellExecutor,
)

__all__ = [
    "CommandExecutor",
    "ContainerExecutor",
    "FileReadExecutor",
    "RemoteShellExecutor",
]
