"""
Abstract base class for paginated trade-disclosure sources
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional
import logging

from core.config import settings
from ingestion.fetcher import FetchResult, PagedFetcher, PageErrorPolicy
from models.base import SyncType, TraderKind

logger = logging.getLogger(__name__)


class DataSource(ABC):
    """
    Abstract base class for all disclosure feeds.

    Responsibilities:
    - Fetch one 1-based page of raw records
    - Crawl all pages via PagedFetcher

    Subclasses declare which sync type (checkpoint row) they own and which
    normalizer branch their records go through.
    """

    sync_type: SyncType
    source_kind: TraderKind
    label: str

    def __init__(self, error_policy: Optional[PageErrorPolicy] = None):
        self.error_policy = PageErrorPolicy(error_policy or settings.PAGE_ERROR_POLICY)

    @abstractmethod
    async def fetch_page(self, page: int, limit: int) -> List[Dict[str, Any]]:
        """
        Fetch one page from the source.

        Args:
            page: 1-based page number
            limit: Requested page size (<= 250)

        Returns:
            List of raw record dictionaries
        """
        pass

    async def fetch_all(self, max_pages: int, page_size: int) -> FetchResult:
        fetcher = PagedFetcher(self.fetch_page, label=self.label, error_policy=self.error_policy)
        return await fetcher.fetch_all(max_pages=max_pages, page_size=page_size)

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.sync_type.value}>"
