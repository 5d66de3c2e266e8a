"""Batch scheduler: bounded-concurrency execution with an inter-batch cooldown."""

import asyncio
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    List,
    Optional,
    Sequence,
    TypeVar,
)

from ..core.error_handling import FetchCancelledError, RetryState
from ..core.logging import get_logger

I = TypeVar("I")

BatchCallback = Callable[[int, int, List["BatchOutcome"]], None]
Worker = Callable[[I, RetryState], Awaitable[Any]]


@dataclass
class BatchOutcome(Generic[I]):
    """Settled result of one work item: either a result or an error.

    ``attempts`` is 0 for items that were never started.
    """

    item: I
    result: Any = None
    error: Optional[BaseException] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class FetchTask(Generic[I]):
    """A work item and its retry bookkeeping while owned by the scheduler."""

    item: I
    retry_state: RetryState = field(default_factory=RetryState)

    async def settle(self, worker: Worker) -> BatchOutcome:
        try:
            result = await worker(self.item, self.retry_state)
        except FetchCancelledError as e:
            return BatchOutcome(self.item, error=e, attempts=self.retry_state.attempts)
        except Exception as e:
            return BatchOutcome(self.item, error=e, attempts=self._attempts())
        return BatchOutcome(self.item, result=result, attempts=self._attempts())

    def _attempts(self) -> int:
        # A worker that never reached the retry controller still ran once
        return self.retry_state.attempts or 1


def partition(items: Sequence[I], batch_size: int) -> List[List[I]]:
    """Split items into consecutive groups of batch_size (last may be smaller)."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    return [list(items[i : i + batch_size]) for i in range(0, len(items), batch_size)]


def summarize_outcomes(outcomes: Sequence[BatchOutcome]) -> Dict[str, int]:
    """Count settled outcomes."""
    failed = sum(1 for outcome in outcomes if not outcome.ok)
    return {
        "total": len(outcomes),
        "succeeded": len(outcomes) - failed,
        "failed": failed,
    }


class BatchScheduler:
    """Runs work items in fixed-size concurrent groups.

    All items of a group run concurrently and the group completes once every item
    has settled; one failure never cancels its siblings. Between groups the
    scheduler waits ``inter_batch_delay`` seconds, which caps the request rate at
    roughly ``batch_size / inter_batch_delay``.
    """

    def __init__(self, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self._sleep = sleep
        self.logger = get_logger("scheduler")

    async def run_batched(
        self,
        items: Sequence[I],
        batch_size: int,
        inter_batch_delay: float,
        worker: Worker,
        cancel_event: Optional[asyncio.Event] = None,
        on_batch_complete: Optional[BatchCallback] = None,
    ) -> List[BatchOutcome]:
        """Run ``worker`` over ``items`` in batches.

        Args:
            items: Work items
            batch_size: Number of items run concurrently per group
            inter_batch_delay: Cooldown between groups (seconds)
            worker: Coroutine function called as worker(item, retry_state); the
                RetryState is owned by the task and records its attempts
            cancel_event: Once set, no further groups are started
            on_batch_complete: Called as (batch_number, total_batches, outcomes)

        Returns:
            One BatchOutcome per item, in input order
        """
        batches = partition(items, batch_size)
        total_batches = len(batches)
        outcomes: List[BatchOutcome] = []

        for batch_number, batch in enumerate(batches, start=1):
            if cancel_event is not None and cancel_event.is_set():
                skipped = [
                    item for group in batches[batch_number - 1 :] for item in group
                ]
                self.logger.warning(
                    f"Cancelled before batch {batch_number}/{total_batches}, "
                    f"skipping {len(skipped)} items"
                )
                outcomes.extend(
                    BatchOutcome(item, error=FetchCancelledError("Batch not started"))
                    for item in skipped
                )
                break

            tasks = [FetchTask(item) for item in batch]
            batch_outcomes = list(
                await asyncio.gather(*(task.settle(worker) for task in tasks))
            )
            outcomes.extend(batch_outcomes)

            self.logger.debug(
                f"Batch {batch_number}/{total_batches} settled",
                **summarize_outcomes(batch_outcomes),
            )
            if on_batch_complete is not None:
                on_batch_complete(batch_number, total_batches, batch_outcomes)

            if batch_number < total_batches and inter_batch_delay > 0:
                await self._sleep(inter_batch_delay)

        return outcomes
