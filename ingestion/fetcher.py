"""
Multi-page crawler for provider list endpoints
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List

from core.exceptions import AuthenticationError, RequestCancelledError, SyncException
from schemas.sync import MAX_PAGE_SIZE

logger = logging.getLogger(__name__)

PageFetcher = Callable[[int, int], Awaitable[List[Dict[str, Any]]]]


class PageErrorPolicy(str, enum.Enum):
    """What to do when a single page cannot be fetched"""
    SKIP = "skip"
    ABORT = "abort"


@dataclass
class FetchResult:
    records: List[Dict[str, Any]] = field(default_factory=list)
    pages_fetched: int = 0
    pages_failed: int = 0
    failed_pages: List[int] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.pages_failed == 0


class PagedFetcher:
    """
    Crawls pages 1..max_pages of one endpoint, sequentially.

    Termination:
    - a page with zero records ends the crawl (end of data)
    - a page shorter than the requested size is kept and ends the crawl
    - max_pages reached

    Page errors are logged and the page is skipped (SKIP) or re-raised
    (ABORT). Authentication failures and cancellation always propagate.
    """

    def __init__(
        self,
        fetch_page: PageFetcher,
        label: str,
        error_policy: PageErrorPolicy = PageErrorPolicy.SKIP
    ):
        self.fetch_page = fetch_page
        self.label = label
        self.error_policy = PageErrorPolicy(error_policy)

    async def fetch_all(self, max_pages: int, page_size: int) -> FetchResult:
        page_size = max(1, min(page_size, MAX_PAGE_SIZE))
        result = FetchResult()

        for page in range(1, max_pages + 1):
            try:
                records = await self.fetch_page(page, page_size)
            except (AuthenticationError, RequestCancelledError):
                raise
            except SyncException as e:
                if self.error_policy == PageErrorPolicy.ABORT:
                    raise
                result.pages_failed += 1
                result.failed_pages.append(page)
                result.errors.append(f"Failed to fetch {self.label} page {page}: {e.message}")
                logger.error(f"{self.label}: page {page} failed, skipping: {e}")
                continue

            result.pages_fetched += 1

            if not records:
                logger.info(f"{self.label}: page {page} empty, end of data")
                break

            result.records.extend(records)
            logger.info(f"{self.label}: page {page} returned {len(records)} records")

            if len(records) < page_size:
                break

        logger.info(
            f"{self.label}: fetched {len(result.records)} records "
            f"({result.pages_fetched} pages, {result.pages_failed} failed)"
        )
        return result
