"""
Base executor.

Dispatches a task descriptor to the handler registered for its operation id.
The handler table is built once per instance; its keys are the capability
set.
"""

from abc import abstractmethod
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Mapping, Optional

import structlog

from orkestra_executors.domain.errors import (
    ExecutionCanceledError,
    UnsupportedOperationError,
)
from orkestra_executors.domain.ports import IExecutorPort
from orkestra_executors.domain.value_objects import ExecutionContext, TaskDescriptor

# handler(parameters, context) -> payload value object with to_dict()
Handler = Callable[[Mapping[str, Any], ExecutionContext], Awaitable[Any]]

logger = structlog.get_logger(__name__)


class BaseExecutor(IExecutorPort):
    """
    Handler-table implementation of the executor port.

    Subclasses return their operation handlers from ``_build_handlers``.
    """

    def __init__(self):
        self._handlers: Mapping[str, Handler] = MappingProxyType(dict(self._build_handlers()))
        self._capabilities = frozenset(self._handlers)

    @abstractmethod
    def _build_handlers(self) -> Dict[str, Handler]:
        pass

    def get_capabilities(self) -> FrozenSet[str]:
        return self._capabilities

    async def execute(
        self,
        descriptor: TaskDescriptor,
        context: Optional[ExecutionContext] = None,
    ) -> Dict[str, Any]:
        context = context or ExecutionContext()
        handler = self._handlers.get(descriptor.operation)
        if handler is None:
            raise UnsupportedOperationError(descriptor.operation)
        if context.is_cancelled:
            raise ExecutionCanceledError(descriptor.operation)

        logger.debug(
            "Dispatching task",
            operation=descriptor.operation,
            execution_id=context.execution_id,
            executor=type(self).__name__,
        )
        output = await handler(descriptor.parameters, context)
        return output.to_dict()
