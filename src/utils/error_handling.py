"""Error handling utilities for consistent exception recording and metrics."""

import logging
from collections.abc import Generator
from contextlib import contextmanager
from typing import TypedDict

import newrelic.agent
import structlog

# Support both standard Logger and structlog BoundLogger
LoggerType = logging.Logger | structlog.BoundLogger


class ErrorCounter(TypedDict, total=False):
    """Counter dict for tracking success/failure metrics."""

    successful: int
    failed: int


@contextmanager
def record_exception_and_ignore(
    logger: LoggerType, context: str, counter: ErrorCounter
) -> Generator[None]:
    """Record the outcome of one unit of work and keep going on failure.

    On success: increments counter["successful"]
    On exception: logs error, records to New Relic, increments counter["failed"], continues execution

    Example:
        counter: ErrorCounter = {}
        for event in events:
            with record_exception_and_ignore(logger, f"Failed to reconcile event {event.gid}", counter):
                await reconciler.reconcile(spreadsheet_id, event)
    """
    try:
        yield
        counter["successful"] = counter.get("successful", 0) + 1
    except Exception as e:
        logger.error(f"{context}: {e}")
        newrelic.agent.record_exception()
        counter["failed"] = counter.get("failed", 0) + 1
