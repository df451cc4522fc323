"""
Dispatch Service

Routes task descriptors to the backend that advertises their operation id.
"""

from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, Optional

import structlog

from orkestra_executors.domain.errors import UnsupportedOperationError
from orkestra_executors.domain.ports import IExecutorPort
from orkestra_executors.domain.value_objects import ExecutionContext, TaskDescriptor
from orkestra_executors.infrastructure.backends import (
    CommandExecutor,
    ContainerExecutor,
    FileReadExecutor,
    RemoteShellExecutor,
)
from orkestra_executors.infrastructure.config import Settings, get_settings

logger = structlog.get_logger(__name__)


class BackendRegistry(IExecutorPort):
    """
    Aggregates several executors behind one entry point.

    Capability sets are read once at construction; an operation id offered
    by two backends is a configuration error.
    """

    def __init__(self, backends: Iterable[IExecutorPort]):
        routes: Dict[str, IExecutorPort] = {}
        for backend in backends:
            for operation in backend.get_capabilities():
                if operation in routes:
                    raise ValueError(
                        f"Operation '{operation}' is provided by both "
                        f"{type(routes[operation]).__name__} and {type(backend).__name__}"
                    )
                routes[operation] = backend
        self._routes = MappingProxyType(routes)
        self._capabilities = frozenset(routes)

    def get_capabilities(self) -> FrozenSet[str]:
        return self._capabilities

    async def execute(
        self,
        descriptor: TaskDescriptor,
        context: Optional[ExecutionContext] = None,
    ) -> Dict[str, Any]:
        backend = self._routes.get(descriptor.operation)
        if backend is None:
            logger.warning("No backend for operation", operation=descriptor.operation)
            raise UnsupportedOperationError(descriptor.operation)
        return await backend.execute(descriptor, context)


def build_default_registry(settings: Optional[Settings] = None) -> BackendRegistry:
    """Registry with the command, container, SSH and file backends."""
    settings = settings or get_settings()
    return BackendRegistry(
        [
            CommandExecutor(settings),
            ContainerExecutor(settings),
            RemoteShellExecutor(settings),
            FileReadExecutor(),
        ]
    )
