"""
Single-flight queue for Google Sheets writes.

Sheets enforces a per-minute write quota shared by every webhook delivery hitting the same
spreadsheet, and concurrent read-modify-write sequences (scan for a row, then write it) would race.
Every sheet mutation is therefore submitted here and run by one worker task, FIFO, one at a time.
"""

import asyncio
import contextlib
import random
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from src.utils.config import get_sheet_write_min_delay
from src.utils.logging import get_logger
from src.utils.rate_limiter import RateLimitedError

logger = get_logger(__name__)

DEFAULT_RATE_LIMIT_BACKOFF_SECONDS = (5.0, 10.0)


@dataclass
class _QueuedOperation:
    operation: Callable[[], Awaitable[Any]]
    future: asyncio.Future[Any]
    attempts: int = 0


class SheetWriteQueue:
    """FIFO queue running one sheet operation at a time.

    - At least `min_delay` seconds pass between the completion of one operation and the start of
      the next.
    - An operation raising RateLimitedError is put back at the head of the queue after a jittered
      backoff. The caller keeps waiting and never sees the rate limit.
    - Any other exception is raised to the caller of submit().
    - If the worker itself is cancelled or dies, every waiting caller is cancelled rather than left
      hanging, and drain() returns.
    """

    def __init__(
        self,
        min_delay: float | None = None,
        rate_limit_backoff: tuple[float, float] = DEFAULT_RATE_LIMIT_BACKOFF_SECONDS,
    ):
        self.min_delay = get_sheet_write_min_delay() if min_delay is None else min_delay
        self.rate_limit_backoff = rate_limit_backoff

        self._pending: deque[_QueuedOperation] = deque()
        self._has_work = asyncio.Event()
        self._all_done = asyncio.Event()
        self._all_done.set()
        self._unfinished = 0
        self._in_flight: _QueuedOperation | None = None
        self._worker: asyncio.Task[None] | None = None

    @property
    def depth(self) -> int:
        """Operations waiting to run, excluding the one in flight."""
        return len(self._pending)

    @property
    def unfinished(self) -> int:
        """Operations submitted and not yet resolved, including the one in flight."""
        return self._unfinished

    def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="sheet-write-queue")

    async def submit[T](self, operation: Callable[[], Awaitable[T]]) -> T:
        """Enqueue an operation and wait for its result.

        Args:
            operation: Zero-argument coroutine function performing the sheet calls

        Returns:
            Whatever the operation returns, once it has run successfully
        """
        self.start()

        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._pending.append(_QueuedOperation(operation, future))
        self._unfinished += 1
        self._all_done.clear()
        self._has_work.set()

        return await future

    async def drain(self) -> None:
        """Wait until every submitted operation has been resolved."""
        await self._all_done.wait()

    async def stop(self) -> None:
        """Drain the queue, then stop the worker."""
        await self.drain()

        if self._worker is not None:
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None

    def _mark_done(self) -> None:
        self._unfinished -= 1
        if self._unfinished == 0:
            self._all_done.set()

    def _abandon(self) -> None:
        """Release every waiting caller when the worker is going away."""
        abandoned = [*([self._in_flight] if self._in_flight else []), *self._pending]
        self._in_flight = None
        self._pending.clear()
        if abandoned:
            logger.warning("Sheet write worker stopped with work pending", abandoned=len(abandoned))
        for item in abandoned:
            item.future.cancel()
            self._mark_done()

    async def _run(self) -> None:
        try:
            while True:
                if not self._pending:
                    self._has_work.clear()
                    await self._has_work.wait()
                    continue
                await self._run_next()
        except BaseException:
            self._abandon()
            raise

    async def _run_next(self) -> None:
        item = self._in_flight = self._pending.popleft()
        logger.info("Processing sheet write", queue_depth=len(self._pending))

        # Caller went away (request cancelled), nothing is waiting on the result
        if item.future.done():
            self._in_flight = None
            self._mark_done()
            return

        item.attempts += 1
        try:
            result = await item.operation()
        except RateLimitedError as e:
            backoff = random.uniform(*self.rate_limit_backoff)
            logger.warning(
                f"Sheets rate limited, requeueing write in {backoff:.1f} seconds",
                attempts=item.attempts,
                queue_depth=len(self._pending),
                error=str(e),
            )
            await asyncio.sleep(backoff)
            self._pending.appendleft(item)
            self._in_flight = None
            return
        except Exception as e:
            logger.error(f"Sheet write failed: {e}", attempts=item.attempts)
            if not item.future.done():
                item.future.set_exception(e)
        except asyncio.CancelledError:
            worker = asyncio.current_task()
            if worker is not None and worker.cancelling():
                raise
            # The operation cancelled itself; the worker carries on
            logger.warning("Sheet write cancelled", attempts=item.attempts)
            item.future.cancel()
        else:
            if not item.future.done():
                item.future.set_result(result)

        self._in_flight = None
        self._mark_done()
        await asyncio.sleep(self.min_delay)
