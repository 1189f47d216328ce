"""Hand-off between the webhook endpoint and event reconciliation.

The endpoint answers Asana as soon as a delivery is verified, reconciliation happens here, one
event at a time. The app lifespan drains this worker on shutdown so accepted events are not lost.
"""

import asyncio
import contextlib

from connectors.asana.asana_task_reconciler import AsanaTaskReconciler
from connectors.asana.client.asana_api_models import AsanaWebhookEvent
from src.utils.error_handling import ErrorCounter, record_exception_and_ignore
from src.utils.logging import get_logger

logger = get_logger(__name__)


class WebhookEventWorker:
    def __init__(self, reconciler: AsanaTaskReconciler):
        self._reconciler = reconciler
        self._queue: asyncio.Queue[tuple[str, AsanaWebhookEvent]] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self.counter: ErrorCounter = {}

    @property
    def depth(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="webhook-event-worker")

    def enqueue(self, spreadsheet_id: str, events: list[AsanaWebhookEvent]) -> None:
        self.start()
        for event in events:
            self._queue.put_nowait((spreadsheet_id, event))
        logger.info(
            "Queued webhook events",
            spreadsheet_id=spreadsheet_id,
            event_count=len(events),
            queue_depth=self._queue.qsize(),
        )

    async def drain(self) -> None:
        await self._queue.join()

    async def stop(self) -> None:
        await self.drain()

        if self._worker is not None:
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None

        logger.info(
            "Webhook event worker stopped",
            successful=self.counter.get("successful", 0),
            failed=self.counter.get("failed", 0),
        )

    async def _run(self) -> None:
        while True:
            spreadsheet_id, event = await self._queue.get()
            try:
                with record_exception_and_ignore(
                    logger,
                    f"Failed to reconcile {event.action} event for {event.resource.gid}",
                    self.counter,
                ):
                    await self._reconciler.reconcile(spreadsheet_id, event)
            finally:
                self._queue.task_done()
