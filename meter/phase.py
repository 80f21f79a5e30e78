"""
Concurrent phase orchestration.

A phase launches N transfer tasks at once, each under its own timer, and
joins them fail-fast: the first failure cancels whatever is still in
flight and is raised to the caller.  Only when every task succeeds are the
results folded into a :class:`PhaseAggregate`.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional, TypeVar

from .constants import DEFAULT_TIMEOUT_MS
from .errors import MeasurementCancelled, OperationTimeoutError
from .stats import PhaseAggregate, TransferResult

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

StepFn = Callable[[], None]
TaskFactory = Callable[[], Awaitable[TransferResult]]


async def with_timeout(
    factory: Callable[[], Awaitable[T]],
    timeout_ms: float = DEFAULT_TIMEOUT_MS,
) -> T:
    """Await ``factory()``, cancelling it once *timeout_ms* has elapsed."""
    try:
        return await asyncio.wait_for(factory(), timeout=timeout_ms / 1000)
    except OperationTimeoutError:
        raise
    except asyncio.TimeoutError as exc:
        raise OperationTimeoutError(f"timed out after {timeout_ms:.0f} ms") from exc


async def _cancel_all(tasks: Iterable[asyncio.Future]) -> None:
    tasks = list(tasks)
    for t in tasks:
        t.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


async def run_phase(
    count: int,
    task_factory: TaskFactory,
    timeout_ms: float = DEFAULT_TIMEOUT_MS,
    on_step: Optional[StepFn] = None,
) -> PhaseAggregate:
    """Run *count* transfers concurrently and aggregate their results.

    ``on_step`` is called exactly once per task when it finishes, whether it
    succeeded, failed or was cancelled.
    """
    if count < 1:
        raise ValueError(f"count must be >= 1, got {count}")

    tasks: List[asyncio.Future] = []
    for _ in range(count):
        task = asyncio.ensure_future(with_timeout(task_factory, timeout_ms))
        if on_step is not None:
            task.add_done_callback(lambda _t: on_step())
        tasks.append(task)

    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        await _cancel_all(tasks)
        raise

    for i, task in enumerate(tasks):
        if task not in done:
            continue
        if task.cancelled():
            error: BaseException = MeasurementCancelled(f"transfer {i + 1} was cancelled")
        elif task.exception() is not None:
            error = task.exception()
        else:
            continue

        LOGGER.debug("transfer %d/%d failed: %r; cancelling %d in flight",
                     i + 1, count, error, len(pending))
        await _cancel_all(pending)
        raise error

    return PhaseAggregate.from_results([t.result() for t in tasks])
