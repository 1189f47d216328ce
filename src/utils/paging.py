"""Cursor pagination with bounded error tolerance.

Asana list endpoints return `next_page.offset` tokens. Long listings (every task of every project in
a workspace) should not be lost because one page kept hitting transient failures, so fetch_all_pages
keeps whatever it has collected once the failure budget is spent. Permanent errors (bad gid, revoked
token) are raised to the caller.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from src.utils.logging import get_logger
from src.utils.rate_limiter import RateLimitedError

logger = get_logger(__name__)

DEFAULT_PAGE_DELAY_SECONDS = 0.25
DEFAULT_ERROR_DELAY_SECONDS = 5.0
DEFAULT_MAX_CONSECUTIVE_ERRORS = 3


@dataclass
class Page[T]:
    items: list[T]
    next_offset: str | None


async def fetch_all_pages[T](
    fetch_page: Callable[[str | None], Awaitable[Page[T]]],
    *,
    description: str = "items",
    page_delay: float = DEFAULT_PAGE_DELAY_SECONDS,
    error_delay: float = DEFAULT_ERROR_DELAY_SECONDS,
    max_consecutive_errors: int = DEFAULT_MAX_CONSECUTIVE_ERRORS,
) -> list[T]:
    """Collect every item of a cursor-paginated listing.

    Args:
        fetch_page: Called with the offset of the page to fetch, None for the first page
        description: What is being listed, used in log lines
        page_delay: Pause between successful pages
        error_delay: Pause before retrying a page that failed transiently
        max_consecutive_errors: Transient failures in a row after which the partial result is returned

    Returns:
        All items fetched, possibly partial if the error budget was exhausted

    Raises:
        Any non-transient error raised by fetch_page, e.g. AsanaApiError
    """
    items: list[T] = []
    offset: str | None = None
    page_count = 0
    consecutive_errors = 0

    while True:
        try:
            page = await fetch_page(offset)
        except RateLimitedError as e:
            consecutive_errors += 1
            logger.warning(
                f"Error fetching page of {description}",
                page=page_count + 1,
                consecutive_errors=consecutive_errors,
                error=str(e),
            )
            if consecutive_errors >= max_consecutive_errors:
                logger.error(
                    f"Too many consecutive errors, returning partial {description}",
                    pages=page_count,
                    item_count=len(items),
                )
                return items
            await asyncio.sleep(error_delay)
            continue

        consecutive_errors = 0
        page_count += 1
        items.extend(page.items)
        logger.debug(
            f"Fetched page {page_count} of {description}",
            page_items=len(page.items),
            total_items=len(items),
        )

        if not page.next_offset:
            break
        offset = page.next_offset
        await asyncio.sleep(page_delay)

    logger.info(f"Fetched all {description}", pages=page_count, item_count=len(items))
    return items
