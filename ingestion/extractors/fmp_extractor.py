"""
FMP-backed disclosure sources: Senate, House and corporate insiders
"""

from typing import List, Dict, Any, Optional
import logging

from ingestion.base import DataSource
from ingestion.extractors.fmp_client import FMPClient
from ingestion.fetcher import PageErrorPolicy
from models.base import SyncType, TraderKind

logger = logging.getLogger(__name__)


class FMPSource(DataSource):
    """Binds one FMP list endpoint to a sync type"""

    endpoint: str

    def __init__(self, client: FMPClient, error_policy: Optional[PageErrorPolicy] = None):
        super().__init__(error_policy=error_policy)
        self.client = client

    async def fetch_page(self, page: int, limit: int) -> List[Dict[str, Any]]:
        return await self.client.fetch_page(self.endpoint, page, limit)


class SenateTradesSource(FMPSource):
    sync_type = SyncType.SENATE
    source_kind = TraderKind.SENATOR
    label = "Senate"
    endpoint = FMPClient.SENATE_LATEST


class HouseTradesSource(FMPSource):
    sync_type = SyncType.HOUSE
    source_kind = TraderKind.REPRESENTATIVE
    label = "House"
    endpoint = FMPClient.HOUSE_LATEST


class InsiderTradesSource(FMPSource):
    sync_type = SyncType.INSIDERS
    source_kind = TraderKind.INSIDER
    label = "Insider"
    endpoint = FMPClient.INSIDER_LATEST


def build_sources(client: FMPClient, error_policy: Optional[PageErrorPolicy] = None) -> List[FMPSource]:
    """All sources in sync order; the orchestrator filters insiders by option."""
    return [
        SenateTradesSource(client, error_policy),
        HouseTradesSource(client, error_policy),
        InsiderTradesSource(client, error_policy),
    ]
