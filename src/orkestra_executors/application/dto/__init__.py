"""
Application DTOs

Typed parameter models for each operation.
"""

from .task_params import (
    CommandRunParams,
    ContainerRunParams,
    FileReadParams,
    RemoteShellParams,
    decode_params,
    format_value,
)

__all__ = [
    "CommandRunParams",
    "ContainerRunParams",
    "FileReadParams",
    "RemoteShellParams",
    "decode_params",
    "format_value",
]
