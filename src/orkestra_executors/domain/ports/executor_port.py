"""
Executor Port Interface

Defines the contract every backend exposes to the orchestration engine.
This is an input port - called by the engine or the registry.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, FrozenSet, Optional

from orkestra_executors.domain.errors import ExecutorError
from orkestra_executors.domain.value_objects import (
    ExecutionContext,
    TaskDescriptor,
    TaskResult,
)


class IExecutorPort(ABC):
    """
    Port interface for task execution.

    Implementations are provided by the infrastructure layer, one per
    execution substrate.
    """

    @abstractmethod
    def get_capabilities(self) -> FrozenSet[str]:
        """
        Operation identifiers this executor supports.

        Returns:
            Immutable set, fixed for the lifetime of the instance
        """
        pass

    @abstractmethod
    async def execute(
        self,
        descriptor: TaskDescriptor,
        context: Optional[ExecutionContext] = None,
    ) -> Dict[str, Any]:
        """
        Execute one task.

        Args:
            descriptor: Operation id and parameters
            context: Per-call context (secrets, cancellation)

        Returns:
            Operation-specific result payload

        Raises:
            ExecutorError: Typed failure; NonZeroExitError carries the payload
        """
        pass

    async def run(
        self,
        descriptor: TaskDescriptor,
        context: Optional[ExecutionContext] = None,
    ) -> TaskResult:
        """
        Execute one task and wrap the outcome in a TaskResult envelope.

        Only ExecutorError is converted; anything else propagates.
        """
        try:
            payload = await self.execute(descriptor, context)
        except ExecutorError as exc:
            return TaskResult.failure(descriptor.operation, exc)
        return TaskResult.success(descriptor.operation, payload)
