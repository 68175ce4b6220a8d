"""Dispatch of transfer units and batches with bounded parallelism."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional, TypeVar

from multistore_migrator.core.error_handler import RetryConfig, RetryHandler, create_batch_retry_config

logger = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')


class BatchScheduler:
    """Runs transfer units with at most ``max_workers`` in flight.

    With ``max_workers=1`` units run strictly one after another in the
    order given. Either way the first unit to fail stops the dispatch of
    units that have not started yet, and its exception is re-raised.

    Units already in flight are never cancelled: their blocking work runs
    in worker threads that cannot be interrupted, so the scheduler waits
    for them before reporting the failure.
    """

    def __init__(
        self,
        max_workers: int = 1,
        retry_config: Optional[RetryConfig] = None,
        retry_handler: Optional[RetryHandler] = None
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self.retry_config = retry_config or create_batch_retry_config()
        self.retry_handler = retry_handler or RetryHandler(logger)

    async def run_units(
        self,
        units: Iterable[T],
        worker: Callable[[T], Awaitable[R]]
    ) -> List[R]:
        """Await ``worker(unit)`` for every unit and return results in unit order."""
        units = list(units)
        if self.max_workers == 1:
            results = []
            for unit in units:
                results.append(await worker(unit))
            return results

        semaphore = asyncio.Semaphore(self.max_workers)
        failed = asyncio.Event()

        async def bounded(unit: T) -> Optional[R]:
            async with semaphore:
                if failed.is_set():
                    logger.debug(f"Skipping unit {unit} after an earlier failure")
                    return None
                try:
                    return await worker(unit)
                except Exception:
                    failed.set()
                    raise

        results = await asyncio.gather(*(bounded(unit) for unit in units), return_exceptions=True)

        for result in results:
            if isinstance(result, BaseException):
                raise result
        return results

    async def run_batch(self, func: Callable[..., Any], *args, description: str = "batch") -> Any:
        """Run one blocking batch call in a worker thread under the retry policy."""
        return await self.retry_handler.retry_with_backoff(
            asyncio.to_thread,
            func,
            *args,
            retry_config=self.retry_config,
            description=description
        )
