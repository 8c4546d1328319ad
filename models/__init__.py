"""
SQLAlchemy ORM models for database tables.

Models:
    base: Base declarative class and shared enums (TraderType, TransactionType,
          SyncType, SyncStatus, ...)
    traders: Congressional members and corporate insiders
    trades: Stock tickers and disclosed stock trades
    checkpoint: Per-sync-type resumable progress (sync_progress)

Database Schema:
    Production runs on PostgreSQL (JSONB for the raw source payload); the
    column types degrade to portable equivalents on SQLite for tests.

Usage:
    from models import StockTrade, SyncCheckpoint
    from models.base import SyncType, SyncStatus

Identity:
    stock_trades carries a UNIQUE constraint over (trader_type, trader_id,
    ticker_symbol, transaction_date, transaction_type).
"""

from models.base import (
    Base, TraderType, TransactionType, Position, TraderKind, SyncType, SyncStatus
)
from models.traders import CongressionalMember, CorporateInsider
from models.trades import StockTicker, StockTrade
from models.checkpoint import SyncCheckpoint

__all__ = [
    "Base",
    "TraderType",
    "TransactionType",
    "Position",
    "TraderKind",
    "SyncType",
    "SyncStatus",
    "CongressionalMember",
    "CorporateInsider",
    "StockTicker",
    "StockTrade",
    "SyncCheckpoint",
]
