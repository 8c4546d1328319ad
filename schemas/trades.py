"""
Pydantic schemas for provider records and canonical trades
"""

from pydantic import BaseModel, Field, AliasChoices, validator
from typing import Optional, Dict, Any, NamedTuple
from datetime import date, datetime
from decimal import Decimal
from models.base import TraderType, TraderKind, TransactionType


# ============================================================================
# Raw provider records (FMP)
# ============================================================================

class CongressionalTradeRecord(BaseModel):
    """Senate / House disclosure row as returned by FMP"""
    symbol: Optional[str] = None
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    office: Optional[str] = None
    district: Optional[str] = None
    disclosure_date: Optional[str] = Field(
        None, validation_alias=AliasChoices("disclosureDate", "dateReceived")
    )
    transaction_date: Optional[str] = Field(None, alias="transactionDate")
    owner: Optional[str] = None
    asset_description: Optional[str] = Field(None, alias="assetDescription")
    asset_type: Optional[str] = Field(None, alias="assetType")
    type: Optional[str] = None
    amount: Optional[str] = None
    comment: Optional[str] = None
    link: Optional[str] = None

    class Config:
        populate_by_name = True
        extra = "allow"

    @property
    def display_name(self) -> Optional[str]:
        if self.office and self.office.strip():
            return self.office.strip()
        parts = [p.strip() for p in (self.first_name, self.last_name) if p and p.strip()]
        return " ".join(parts) or None


class InsiderTradeRecord(BaseModel):
    """Insider trading row as returned by FMP (current and legacy field names)"""
    symbol: Optional[str] = None
    filing_date: Optional[str] = Field(None, alias="filingDate")
    transaction_date: Optional[str] = Field(None, alias="transactionDate")
    reporting_cik: Optional[str] = Field(None, alias="reportingCik")
    company_cik: Optional[str] = Field(None, alias="companyCik")
    reporting_name: Optional[str] = Field(None, alias="reportingName")
    type_of_owner: Optional[str] = Field(None, alias="typeOfOwner")
    transaction_type: Optional[str] = Field(None, alias="transactionType")
    acquisition_or_disposition: Optional[str] = Field(
        None, validation_alias=AliasChoices("acquisitionOrDisposition", "acquiredDisposedCode")
    )
    securities_transacted: Optional[float] = Field(
        None, validation_alias=AliasChoices("securitiesTransacted", "amountOfShares")
    )
    price: Optional[float] = Field(
        None, validation_alias=AliasChoices("price", "pricePerShare")
    )
    security_name: Optional[str] = Field(None, alias="securityName")

    class Config:
        populate_by_name = True
        extra = "allow"

    @validator("reporting_cik", "company_cik", pre=True)
    def coerce_cik(cls, v):
        if v is None:
            return v
        return str(v)


# ============================================================================
# Canonical representation
# ============================================================================

class IdentityKey(NamedTuple):
    """(trader_type, trader_id, ticker_symbol, transaction_date, transaction_type)"""
    trader_type: TraderType
    trader_id: int
    ticker_symbol: str
    transaction_date: date
    transaction_type: TransactionType


class TraderRef(BaseModel):
    """
    Natural key and attributes used to find-or-create a trader.

    location_code is the state code for members of Congress and the
    ticker symbol for corporate insiders.
    """
    display_name: str
    kind: TraderKind
    location_code: Optional[str] = None
    district: Optional[int] = None
    position: Optional[str] = None


class CanonicalTrade(BaseModel):
    """Source-independent trade, ready for reconciliation"""
    trader_type: TraderType
    trader: TraderRef
    ticker_symbol: str
    company_name: Optional[str] = None
    asset_description: Optional[str] = None
    transaction_date: date
    transaction_type: TransactionType
    amount_range: Optional[str] = None
    estimated_value: Optional[Decimal] = None
    quantity: Optional[Decimal] = None
    filing_date: Optional[date] = None
    source_data: Dict[str, Any] = Field(default_factory=dict)

    @validator("ticker_symbol")
    def upper_symbol(cls, v):
        return v.strip().upper()

    def identity_key(self, trader_id: int) -> IdentityKey:
        return IdentityKey(
            trader_type=self.trader_type,
            trader_id=trader_id,
            ticker_symbol=self.ticker_symbol,
            transaction_date=self.transaction_date,
            transaction_type=self.transaction_type,
        )

    def to_trade_data(self, trader_id: int) -> Dict[str, Any]:
        """Column values for a stock_trades row"""
        return {
            "trader_type": self.trader_type,
            "trader_id": trader_id,
            "ticker_symbol": self.ticker_symbol,
            "transaction_date": self.transaction_date,
            "transaction_type": self.transaction_type,
            "asset_description": self.asset_description,
            "amount_range": self.amount_range,
            "estimated_value": self.estimated_value,
            "quantity": self.quantity,
            "filing_date": self.filing_date,
            "source_data": self.source_data,
        }


def build_source_payload(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Audit payload stored alongside each trade"""
    return {
        "source": "FMP",
        "originalData": raw,
        "syncedAt": datetime.utcnow().isoformat() + "Z",
    }
