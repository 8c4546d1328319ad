"""
Unit tests for the trade store and the reconciliation engine
"""

import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from core.exceptions import DatabaseConnectionError, PersistenceConflictError, RecordError
from ingestion.loaders.trade_store import SQLAlchemyTradeStore
from ingestion.reconciler import ReconciliationEngine
from ingestion.transformers.normalizer import normalize
from models.base import Position, TraderKind, TraderType, TransactionType
from models.traders import CongressionalMember, CorporateInsider
from models.trades import StockTicker, StockTrade
from schemas.sync import ReconcileAction
from schemas.trades import IdentityKey


async def count_rows(session_factory, model):
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestSQLAlchemyTradeStore:

    @pytest.mark.asyncio
    async def test_find_or_create_member_is_idempotent(self, session_factory):
        store = SQLAlchemyTradeStore(session_factory)

        first = await store.find_or_create_trader("Nancy Pelosi", TraderKind.REPRESENTATIVE, "CA", district=11)
        second = await store.find_or_create_trader("Nancy Pelosi", TraderKind.REPRESENTATIVE, "CA", district=11)

        assert first == second
        assert await count_rows(session_factory, CongressionalMember) == 1

        async with session_factory() as session:
            member = await session.get(CongressionalMember, first)
        assert member.position == Position.REPRESENTATIVE
        assert member.state_code == "CA"
        assert member.district == 11

    @pytest.mark.asyncio
    async def test_insider_keyed_by_name_and_ticker(self, session_factory):
        store = SQLAlchemyTradeStore(session_factory)

        a = await store.find_or_create_trader("Jane Doe", TraderKind.INSIDER, "AAPL", position="director")
        b = await store.find_or_create_trader("Jane Doe", TraderKind.INSIDER, "MSFT", position="officer")
        c = await store.find_or_create_trader("Jane Doe", TraderKind.INSIDER, "AAPL")

        assert a == c
        assert a != b
        assert await count_rows(session_factory, CorporateInsider) == 2

        async with session_factory() as session:
            insider = await session.get(CorporateInsider, a)
        assert insider.company_name == "Company (AAPL)"

    @pytest.mark.asyncio
    async def test_find_or_create_ticker(self, session_factory):
        store = SQLAlchemyTradeStore(session_factory)

        assert await store.find_or_create_ticker("aapl", "Apple Inc.") == "AAPL"
        assert await store.find_or_create_ticker("AAPL", "Something else") == "AAPL"
        assert await store.find_or_create_ticker("XYZ", None) == "XYZ"

        async with session_factory() as session:
            apple = await session.get(StockTicker, "AAPL")
            xyz = await session.get(StockTicker, "XYZ")
        assert apple.company_name == "Apple Inc."
        assert xyz.company_name == "Company (XYZ)"

    @pytest.mark.asyncio
    async def test_duplicate_identity_raises_conflict(self, session_factory):
        store = SQLAlchemyTradeStore(session_factory)
        trader_id = await store.find_or_create_trader("Tommy Tuberville", TraderKind.SENATOR, "AL")
        await store.find_or_create_ticker("AAPL", "Apple")
        data = {
            "trader_type": TraderType.CONGRESSIONAL,
            "trader_id": trader_id,
            "ticker_symbol": "AAPL",
            "transaction_date": date(2025, 1, 2),
            "transaction_type": TransactionType.BUY,
        }

        await store.create_trade(dict(data))
        with pytest.raises(PersistenceConflictError):
            await store.create_trade(dict(data))

        found = await store.find_existing_trade(IdentityKey(**data))
        assert found is not None
        assert await count_rows(session_factory, StockTrade) == 1

    @pytest.mark.asyncio
    async def test_update_keeps_identity(self, session_factory):
        store = SQLAlchemyTradeStore(session_factory)
        trader_id = await store.find_or_create_trader("Tommy Tuberville", TraderKind.SENATOR, "AL")
        await store.find_or_create_ticker("AAPL", "Apple")
        trade = await store.create_trade({
            "trader_type": TraderType.CONGRESSIONAL,
            "trader_id": trader_id,
            "ticker_symbol": "AAPL",
            "transaction_date": date(2025, 1, 2),
            "transaction_type": TransactionType.BUY,
            "amount_range": "$1,001 - $15,000",
        })

        updated = await store.update_trade(trade.id, {
            "ticker_symbol": "MSFT",
            "amount_range": "$15,001 - $50,000",
            "estimated_value": Decimal("32500.5"),
        })

        assert updated.ticker_symbol == "AAPL"
        assert updated.amount_range == "$15,001 - $50,000"


class TestReconciliationEngine:

    @pytest.mark.asyncio
    async def test_decision_table(self, session_factory, make_senate_trade):
        engine = ReconciliationEngine(SQLAlchemyTradeStore(session_factory))
        canonical = normalize(make_senate_trade(0), TraderKind.SENATOR)

        created = await engine.reconcile(canonical, force_update=False)
        skipped = await engine.reconcile(canonical, force_update=False)
        updated = await engine.reconcile(canonical, force_update=True)

        assert created.action == ReconcileAction.CREATED
        assert skipped.action == ReconcileAction.SKIPPED
        assert updated.action == ReconcileAction.UPDATED
        assert created.trade.id == skipped.trade.id == updated.trade.id
        assert await count_rows(session_factory, StockTrade) == 1

    @pytest.mark.asyncio
    async def test_conflict_on_create_is_resolved_by_reread(self, make_senate_trade):
        existing = MagicMock(id=7)
        store = MagicMock()
        store.find_or_create_trader = AsyncMock(return_value=1)
        store.find_or_create_ticker = AsyncMock(return_value="T0000")
        store.find_existing_trade = AsyncMock(side_effect=[None, existing])
        store.create_trade = AsyncMock(side_effect=PersistenceConflictError("duplicate"))
        store.update_trade = AsyncMock()

        engine = ReconciliationEngine(store)
        outcome = await engine.reconcile(normalize(make_senate_trade(0), TraderKind.SENATOR))

        assert outcome.action == ReconcileAction.SKIPPED
        assert outcome.trade is existing
        store.update_trade.assert_not_called()

    @pytest.mark.asyncio
    async def test_process_wraps_bad_record(self, session_factory, make_senate_trade):
        engine = ReconciliationEngine(SQLAlchemyTradeStore(session_factory))

        with pytest.raises(RecordError) as exc_info:
            await engine.process(make_senate_trade(6, symbol=None), TraderKind.SENATOR, position=7, label="Senate")

        assert str(exc_info.value.message).startswith("Error processing Senate trade 7:")
        assert exc_info.value.context["position"] == 7
        assert exc_info.value.context["trader"] == "Shelley Capito"

    @pytest.mark.asyncio
    async def test_process_raises_connectivity_errors(self, make_senate_trade):
        store = MagicMock()
        store.find_or_create_trader = AsyncMock(
            side_effect=OperationalError("SELECT 1", {}, Exception("connection refused"))
        )
        engine = ReconciliationEngine(store)

        with pytest.raises(DatabaseConnectionError):
            await engine.process(make_senate_trade(0), TraderKind.SENATOR, position=1)

    @pytest.mark.asyncio
    async def test_insider_trade_reconciled(self, session_factory, make_insider_trade):
        engine = ReconciliationEngine(SQLAlchemyTradeStore(session_factory))

        outcome = await engine.process(make_insider_trade(1), TraderKind.INSIDER, position=1)

        assert outcome.action == ReconcileAction.CREATED
        assert outcome.trade.trader_type == TraderType.CORPORATE
        assert outcome.trade.estimated_value == Decimal("1250")

        async with session_factory() as session:
            insider = (await session.execute(select(CorporateInsider))).scalar_one()
        assert insider.ticker_symbol == "I0001"
        assert insider.company_name == "Common Stock"
