"""
Persistence collaborator for the reconciliation engine.

TradeStore is the narrow interface the engine depends on; the SQLAlchemy
implementation opens one short session per operation so a failure in one
record never leaves a half-written transaction behind for the next.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.exceptions import PersistenceConflictError, DatabaseError
from models.base import Position, TraderKind
from models.traders import CongressionalMember, CorporateInsider
from models.trades import StockTicker, StockTrade
from schemas.trades import IdentityKey

logger = logging.getLogger(__name__)

# Columns that make up the identity key; never rewritten by update_trade
IDENTITY_COLUMNS = ("trader_type", "trader_id", "ticker_symbol", "transaction_date", "transaction_type")


class TradeStore(ABC):
    """Entity operations needed by the reconciliation engine"""

    @abstractmethod
    async def find_or_create_trader(
        self,
        display_name: str,
        chamber_or_kind: TraderKind,
        location_code: Optional[str],
        district: Optional[int] = None,
        position: Optional[str] = None,
        company_name: Optional[str] = None
    ) -> int:
        """Return the trader id for the natural key, creating the trader once."""

    @abstractmethod
    async def find_or_create_ticker(self, symbol: str, fallback_name: Optional[str] = None) -> str:
        """Return the ticker symbol, creating the ticker row once."""

    @abstractmethod
    async def find_existing_trade(self, key: IdentityKey) -> Optional[StockTrade]:
        pass

    @abstractmethod
    async def create_trade(self, data: Dict[str, Any]) -> StockTrade:
        """Insert a trade; raises PersistenceConflictError on an identity collision."""

    @abstractmethod
    async def update_trade(self, trade_id: int, data: Dict[str, Any]) -> StockTrade:
        pass


class SQLAlchemyTradeStore(TradeStore):
    """
    TradeStore over the async SQLAlchemy ORM.

    Find-or-create is idempotent: a unique-index race on insert is resolved
    by rolling back and re-reading the winner's row.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    # ------------------------------------------------------------------
    # Traders
    # ------------------------------------------------------------------

    async def find_or_create_trader(
        self,
        display_name: str,
        chamber_or_kind: TraderKind,
        location_code: Optional[str],
        district: Optional[int] = None,
        position: Optional[str] = None,
        company_name: Optional[str] = None
    ) -> int:
        kind = TraderKind(chamber_or_kind)
        if kind == TraderKind.INSIDER:
            return await self._find_or_create_insider(display_name, location_code, position, company_name)
        return await self._find_or_create_member(display_name, kind, location_code, district)

    async def _find_or_create_member(
        self,
        name: str,
        kind: TraderKind,
        state_code: Optional[str],
        district: Optional[int]
    ) -> int:
        stmt = select(CongressionalMember.id).where(CongressionalMember.name == name)

        async with self.session_factory() as session:
            existing = (await session.execute(stmt)).scalar_one_or_none()
            if existing is not None:
                return existing

            member = CongressionalMember(
                name=name,
                position=Position.SENATOR if kind == TraderKind.SENATOR else Position.REPRESENTATIVE,
                state_code=state_code[:2] if state_code else None,
                district=district,
            )
            session.add(member)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                existing = (await session.execute(stmt)).scalar_one_or_none()
                if existing is None:
                    raise
                return existing

            logger.info(f"Created congressional member: {name} ({kind.value}, {state_code})")
            return member.id

    async def _find_or_create_insider(
        self,
        name: str,
        symbol: Optional[str],
        position: Optional[str],
        company_name: Optional[str]
    ) -> int:
        stmt = select(CorporateInsider.id).where(
            CorporateInsider.name == name,
            CorporateInsider.ticker_symbol == symbol
        )

        async with self.session_factory() as session:
            existing = (await session.execute(stmt)).scalar_one_or_none()
            if existing is not None:
                return existing

            if not company_name and symbol:
                company_name = (await session.execute(
                    select(StockTicker.company_name).where(StockTicker.symbol == symbol)
                )).scalar_one_or_none()

            insider = CorporateInsider(
                name=name,
                company_name=company_name or (f"Company ({symbol})" if symbol else None),
                position=position,
                ticker_symbol=symbol,
            )
            session.add(insider)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                existing = (await session.execute(stmt)).scalar_one_or_none()
                if existing is None:
                    raise
                return existing

            logger.info(f"Created corporate insider: {name} ({symbol})")
            return insider.id

    # ------------------------------------------------------------------
    # Tickers
    # ------------------------------------------------------------------

    async def find_or_create_ticker(self, symbol: str, fallback_name: Optional[str] = None) -> str:
        symbol = symbol.upper()

        async with self.session_factory() as session:
            existing = await session.get(StockTicker, symbol)
            if existing is not None:
                return existing.symbol

            session.add(StockTicker(
                symbol=symbol,
                company_name=(fallback_name or "").strip()[:255] or f"Company ({symbol})",
            ))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                if await session.get(StockTicker, symbol) is None:
                    raise
            return symbol

    # ------------------------------------------------------------------
    # Trades
    # ------------------------------------------------------------------

    async def find_existing_trade(self, key: IdentityKey) -> Optional[StockTrade]:
        stmt = select(StockTrade).where(
            StockTrade.trader_type == key.trader_type,
            StockTrade.trader_id == key.trader_id,
            StockTrade.ticker_symbol == key.ticker_symbol,
            StockTrade.transaction_date == key.transaction_date,
            StockTrade.transaction_type == key.transaction_type,
        )
        async with self.session_factory() as session:
            return (await session.execute(stmt)).scalars().first()

    async def create_trade(self, data: Dict[str, Any]) -> StockTrade:
        trade = StockTrade(**data)
        async with self.session_factory() as session:
            session.add(trade)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise PersistenceConflictError(
                    "Trade with the same identity key already exists",
                    context={k: str(data.get(k)) for k in IDENTITY_COLUMNS},
                    original_exception=e
                )
        return trade

    async def update_trade(self, trade_id: int, data: Dict[str, Any]) -> StockTrade:
        async with self.session_factory() as session:
            trade = await session.get(StockTrade, trade_id)
            if trade is None:
                raise DatabaseError(
                    f"Trade {trade_id} not found for update",
                    context={"operation": "UPDATE", "table_name": "stock_trades"}
                )
            for column, value in data.items():
                if column in IDENTITY_COLUMNS:
                    continue
                setattr(trade, column, value)
            await session.commit()
            return trade
