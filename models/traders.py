from sqlalchemy import Column, String, Integer, DateTime, Enum, Index
from datetime import datetime
from models.base import Base, BigIntPK, Position


class CongressionalMember(Base):
    """
    Senator or representative, resolved by display name.

    Natural key: name. State and district come from the chamber-specific
    district field of the disclosure feed.
    """
    __tablename__ = "congressional_members"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    position = Column(
        Enum(Position, values_callable=lambda e: [m.value for m in e], native_enum=False, length=20),
        nullable=False
    )
    state_code = Column(String(2), nullable=True)
    district = Column(Integer, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_member_name", "name", unique=True),
    )


class CorporateInsider(Base):
    """
    Corporate insider, resolved by (name, ticker_symbol).
    """
    __tablename__ = "corporate_insiders"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    company_name = Column(String(255), nullable=True)
    position = Column(String(255), nullable=True)
    ticker_symbol = Column(String(10), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_insider_name_ticker", "name", "ticker_symbol", unique=True),
    )
