"""
Bounded-concurrency worker pool.

``min(K, n)`` workers claim indices from a shared counter until the list is
exhausted, so no more than K items are ever in flight regardless of how
long an individual item takes. Results are stored by index and returned in
input order.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar

from glossa.config import DELAY_BETWEEN_ITEMS
from glossa.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')

ProgressCallback = Callable[[int, int, int], None]


class BoundedBatcher:
    """
    Runs an async worker function over a list with at most K in flight.

    Args:
        concurrency: Maximum number of items processed at the same time
        delay: Pause a worker takes after each item while items remain
        on_progress: Called with (percent, completed, total) after each item
    """

    def __init__(self, concurrency: int, delay: float = DELAY_BETWEEN_ITEMS,
                 on_progress: Optional[ProgressCallback] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        if concurrency < 1:
            raise ConfigurationError("Concurrency must be at least 1",
                                     context={'concurrency': concurrency})
        self.concurrency = concurrency
        self.delay = delay
        self.on_progress = on_progress
        self._sleep = sleep

    async def run(self, items: Sequence[T],
                  worker: Callable[[T, int], Awaitable[R]],
                  on_error: Optional[Callable[[T, int, Exception], R]] = None) -> List[R]:
        """
        Process every item.

        Args:
            items: Items in input order
            worker: ``async worker(item, index)`` returning the item's result
            on_error: Returns a fallback result for a failed item. Without it,
                the first failure cancels the other workers and is re-raised.

        Returns:
            Results in input order
        """
        total = len(items)
        if total == 0:
            return []

        results: List[Optional[R]] = [None] * total
        next_index = 0
        completed = 0

        def claim() -> Optional[int]:
            # Single-threaded event loop: no await between read and increment
            nonlocal next_index
            if next_index >= total:
                return None
            index = next_index
            next_index += 1
            return index

        def report() -> None:
            if self.on_progress is not None:
                self.on_progress(round(100 * completed / total), completed, total)

        async def run_worker() -> None:
            nonlocal completed
            while True:
                index = claim()
                if index is None:
                    return
                item = items[index]
                try:
                    results[index] = await worker(item, index)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    if on_error is None:
                        raise
                    logger.warning(f"Item {index} failed, using fallback: {e}")
                    results[index] = on_error(item, index, e)

                completed += 1
                report()

                if self.delay > 0 and next_index < total:
                    await self._sleep(self.delay)

        workers = [asyncio.create_task(run_worker(), name=f"batch-worker-{i + 1}")
                   for i in range(min(self.concurrency, total))]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise

        return results
