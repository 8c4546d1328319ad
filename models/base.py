from sqlalchemy import BigInteger, Integer, JSON
from sqlalchemy.orm import declarative_base
from sqlalchemy.dialects.postgresql import JSONB
import enum

Base = declarative_base()

# Postgres gets BIGSERIAL/JSONB; SQLite (tests) needs INTEGER for autoincrement
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")
JSONPayload = JSON().with_variant(JSONB(), "postgresql")


# ============================================================================
# ENUMS
# ============================================================================

class TraderType(str, enum.Enum):
    """Who executed the trade"""
    CONGRESSIONAL = "congressional"
    CORPORATE = "corporate"


class TransactionType(str, enum.Enum):
    """Normalized transaction direction"""
    BUY = "buy"
    SELL = "sell"
    EXCHANGE = "exchange"


class Position(str, enum.Enum):
    """Congressional chamber position"""
    SENATOR = "senator"
    REPRESENTATIVE = "representative"


class TraderKind(str, enum.Enum):
    """Trader reference kind used by find-or-create"""
    SENATOR = "senator"
    REPRESENTATIVE = "representative"
    INSIDER = "insider"


class SyncType(str, enum.Enum):
    """Independent sync feeds, each owning one checkpoint row"""
    SENATE = "senate"
    HOUSE = "house"
    INSIDERS = "insiders"


class SyncStatus(str, enum.Enum):
    """Checkpoint lifecycle status"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
