from sqlalchemy import (
    Column, String, Date, DateTime, Enum, Numeric, BigInteger, Text, ForeignKey,
    Index, UniqueConstraint
)
from datetime import datetime
from models.base import Base, BigIntPK, JSONPayload, TraderType, TransactionType


def _enum(enum_cls):
    return Enum(enum_cls, values_callable=lambda e: [m.value for m in e], native_enum=False, length=20)


class StockTicker(Base):
    """Ticker registry; rows are created lazily with a fallback company name"""
    __tablename__ = "stock_tickers"

    symbol = Column(String(10), primary_key=True)
    company_name = Column(String(255), nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class StockTrade(Base):
    """
    One disclosed trade.

    Identity key: (trader_type, trader_id, ticker_symbol, transaction_date,
    transaction_type). The unique constraint backs up the reconciliation
    engine's lookup so a concurrent writer can never insert a duplicate.
    """
    __tablename__ = "stock_trades"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)

    # Identity
    trader_type = Column(_enum(TraderType), nullable=False)
    trader_id = Column(BigInteger, nullable=False)
    ticker_symbol = Column(String(10), ForeignKey("stock_tickers.symbol"), nullable=False)
    transaction_date = Column(Date, nullable=False)
    transaction_type = Column(_enum(TransactionType), nullable=False)

    # Details
    asset_description = Column(Text, nullable=True)
    amount_range = Column(String(100), nullable=True)
    estimated_value = Column(Numeric(15, 2), nullable=True)
    quantity = Column(Numeric(18, 4), nullable=True)
    filing_date = Column(Date, nullable=True)

    # Audit
    source_data = Column(JSONPayload, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint(
            "trader_type", "trader_id", "ticker_symbol", "transaction_date", "transaction_type",
            name="uq_stock_trades_identity"
        ),
        Index("idx_trades_ticker_date", "ticker_symbol", "transaction_date"),
        Index("idx_trades_trader", "trader_type", "trader_id"),
    )

    def __repr__(self):
        return (
            f"<StockTrade {self.trader_type}:{self.trader_id} {self.ticker_symbol} "
            f"{self.transaction_type} {self.transaction_date}>"
        )
