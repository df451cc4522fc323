"""
Bounded waiting.

Races one awaitable against a deadline and the context's cancellation
signal. The loser is cancelled; the caller reclaims the underlying resource
(process, container, connection) before the error propagates.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

import structlog

from orkestra_executors.domain.errors import (
    ExecutionCanceledError,
    ExecutionTimeoutError,
)
from orkestra_executors.domain.value_objects import ExecutionContext

T = TypeVar("T")

logger = structlog.get_logger(__name__)


async def wait_bounded(
    awaitable: Awaitable[T],
    *,
    operation: str,
    timeout: Optional[float],
    context: ExecutionContext,
) -> T:
    """
    Await ``awaitable`` unless the deadline or cancellation wins first.

    Args:
        awaitable: The operation's natural completion
        operation: Operation id, used in errors
        timeout: Deadline in seconds, None for no deadline
        context: Execution context carrying the cancellation event

    Returns:
        The awaitable's result

    Raises:
        ExecutionTimeoutError: The deadline elapsed first
        ExecutionCanceledError: The cancellation event was set first
    """
    task = asyncio.ensure_future(awaitable)
    waiters = {task}
    cancel_waiter = None
    if context.cancel_event is not None:
        cancel_waiter = asyncio.ensure_future(context.cancel_event.wait())
        waiters.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(
            waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        if cancel_waiter is not None:
            cancel_waiter.cancel()
        if not task.done():
            task.cancel()

    if task in done:
        return task.result()

    await _reap(task, operation)
    if cancel_waiter is not None and cancel_waiter in done:
        raise ExecutionCanceledError(operation)
    raise ExecutionTimeoutError(operation, timeout)


async def _reap(task: asyncio.Future, operation: str) -> None:
    """Let a cancelled task settle and record how it ended."""
    await asyncio.wait({task})
    if not task.cancelled() and task.exception() is not None:
        logger.debug(
            "Abandoned operation ended with error",
            operation=operation,
            error=str(task.exception()),
        )
