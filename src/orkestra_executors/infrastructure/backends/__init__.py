"""
Execution Backends

One executor per substrate: local process, Docker container, SSH session,
local file.
"""

from .base import BaseExecutor
from .command import CommandExecutor
from .container import ContainerExecutor
from .file_read import FileReadExecutor
from .remote_shell import RemoteShellExecutor

__all__ = [
    "BaseExecutor",
    "CommandExecutor",
    "ContainerExecutor",
    "FileReadExecutor",
    "RemoteShellExecutor",
]
