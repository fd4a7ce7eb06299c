"""
Batch processor contract

A processor is anything with an ``execute(batch)`` method. Returning normally
means the batch succeeded; raising means it failed. Coroutine-returning
processors are awaited to completion before the next cycle is armed.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")
T_contra = TypeVar("T_contra", contravariant=True)


@runtime_checkable
class BatchProcessor(Protocol[T_contra]):
    """Capability the batcher dispatches batches to"""

    def execute(self, batch: list[T_contra]) -> Any:
        ...


class ProcessorExecutionError(RuntimeError):
    """A processor failed on one batch. The original exception is ``__cause__``."""

    def __init__(self, message: str, batch_size: int = 0, cycle: int = 0):
        super().__init__(message)
        self.batch_size = batch_size
        self.cycle = cycle


class CallableProcessor(Generic[T]):
    """Adapt a plain function (sync or async) to the processor contract"""

    def __init__(self, func: Callable[[list[T]], Any]):
        if not callable(func):
            msg = f"Processor function must be callable, got {type(func).__name__}"
            raise TypeError(msg)
        self.func = func

    def execute(self, batch: list[T]) -> Any:
        return self.func(batch)

    def __repr__(self) -> str:
        name = getattr(self.func, "__qualname__", repr(self.func))
        return f"CallableProcessor({name})"


def is_processor(obj: Any) -> bool:
    """True if ``obj`` exposes a callable ``execute``"""
    return callable(getattr(obj, "execute", None))


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def invoke_processor(processor: BatchProcessor[T], batch: Sequence[T]) -> Any:
    """
    Run one ``execute`` call to completion on the calling thread

    Args:
        processor: Batch processor
        batch: Jobs to hand over; passed as a fresh list

    Returns:
        Whatever ``execute`` produced (awaited if it was awaitable)
    """
    result = processor.execute(list(batch))
    if inspect.isawaitable(result):
        result = asyncio.run(_await(result))
    return result
