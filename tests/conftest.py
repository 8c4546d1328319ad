"""
Pytest configuration and fixtures
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from core.exceptions import ServerError
from ingestion.base import DataSource
from ingestion.checkpoint import CheckpointStore
from ingestion.fetcher import PageErrorPolicy
from ingestion.loaders.trade_store import SQLAlchemyTradeStore
from ingestion.reconciler import ReconciliationEngine
from ingestion.runner import SyncOrchestrator
from models.base import Base, SyncType, TraderKind

# In-memory database shared by every session through a single connection
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(test_engine):
    """Session factory handed to the stores under test"""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# ============================================================================
# Fakes
# ============================================================================

class FakeClock:
    """Injectable clock: sleeping advances time instantly"""

    def __init__(self, start: float = 1000.0):
        self.current = start
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self.current

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        if seconds > 0:
            self.current += seconds
        await asyncio.sleep(0)


class StaticSource(DataSource):
    """In-memory paginated source that records every page request"""

    def __init__(
        self,
        records: List[Dict[str, Any]],
        sync_type: SyncType = SyncType.SENATE,
        source_kind: TraderKind = TraderKind.SENATOR,
        label: str = "Senate",
        failing_pages=(),
        error_policy: PageErrorPolicy = PageErrorPolicy.SKIP
    ):
        super().__init__(error_policy=error_policy)
        self.records = records
        self.sync_type = sync_type
        self.source_kind = source_kind
        self.label = label
        self.failing_pages = set(failing_pages)
        self.requests: List[tuple] = []

    async def fetch_page(self, page: int, limit: int) -> List[Dict[str, Any]]:
        self.requests.append((page, limit))
        if page in self.failing_pages:
            raise ServerError(f"Server error 503 for page {page}", context={"page": page})
        start = (page - 1) * limit
        return self.records[start:start + limit]


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def static_source():
    """Factory for StaticSource instances"""
    return StaticSource


@pytest.fixture
def build_orchestrator(session_factory):
    """Wire an orchestrator against the in-memory database"""

    def _build(sources, use_checkpoints: bool = True):
        checkpoints = CheckpointStore(session_factory) if use_checkpoints else None
        engine = ReconciliationEngine(SQLAlchemyTradeStore(session_factory))
        return SyncOrchestrator(sources, engine, checkpoints)

    return _build


# ============================================================================
# Provider record factories
# ============================================================================

MEMBERS = [
    ("Markwayne Mullin", "OK"),
    ("Tommy Tuberville", "AL"),
    ("Shelley Capito", "WV"),
    ("John Boozman", "AR"),
]

REPRESENTATIVES = [
    ("Nancy Pelosi", "CA11"),
    ("Josh Gottheimer", "NJ05"),
    ("Marjorie Greene", "GA14"),
]


def senate_trade(i: int = 0, **overrides) -> Dict[str, Any]:
    name, state = MEMBERS[i % len(MEMBERS)]
    first, last = name.split(" ", 1)
    record = {
        "symbol": f"T{i:04d}",
        "disclosureDate": "2025-01-31",
        "transactionDate": "2025-01-02",
        "firstName": first,
        "lastName": last,
        "office": name,
        "district": state,
        "owner": "Self",
        "assetDescription": f"Test Company {i}",
        "assetType": "Stock",
        "type": "Purchase" if i % 2 == 0 else "Sale (Full)",
        "amount": "$1,001 - $15,000",
        "comment": "",
        "link": f"https://efdsearch.senate.gov/search/view/ptr/{i}/",
    }
    record.update(overrides)
    return record


def house_trade(i: int = 0, **overrides) -> Dict[str, Any]:
    name, district = REPRESENTATIVES[i % len(REPRESENTATIVES)]
    first, last = name.split(" ", 1)
    record = {
        "symbol": f"H{i:04d}",
        "disclosureDate": "2025-02-10",
        "transactionDate": "2025-01-15",
        "firstName": first,
        "lastName": last,
        "office": name,
        "district": district,
        "owner": "Spouse",
        "assetDescription": f"House Company {i}",
        "assetType": "Stock",
        "type": "Purchase",
        "amount": "$15,001 - $50,000",
        "comment": "",
        "link": f"https://disclosures-clerk.house.gov/{i}.pdf",
    }
    record.update(overrides)
    return record


def insider_trade(i: int = 0, **overrides) -> Dict[str, Any]:
    record = {
        "symbol": f"I{i:04d}",
        "filingDate": "2025-03-03",
        "transactionDate": "2025-02-28",
        "reportingCik": "0001234567",
        "companyCik": "0007654321",
        "transactionType": "S-Sale",
        "securitiesOwned": 10000,
        "reportingName": f"Insider {i % 5}",
        "typeOfOwner": "director",
        "acquisitionOrDisposition": "D",
        "securitiesTransacted": 100,
        "price": 12.5,
        "securityName": "Common Stock",
    }
    record.update(overrides)
    return record


@pytest.fixture
def senate_records():
    def _make(count: int, start: int = 0) -> List[Dict[str, Any]]:
        return [senate_trade(i) for i in range(start, start + count)]
    return _make


@pytest.fixture
def make_senate_trade():
    return senate_trade


@pytest.fixture
def make_house_trade():
    return house_trade


@pytest.fixture
def make_insider_trade():
    return insider_trade
