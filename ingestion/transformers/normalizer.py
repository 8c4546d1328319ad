"""
Transform provider records into canonical trades with Pydantic validation
"""

from typing import Dict, Any, Optional, Union
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
import re
import logging

from pydantic import ValidationError as PydanticValidationError

from core.exceptions import NormalizationError
from models.base import TraderKind, TraderType, TransactionType, Position
from schemas.trades import (
    CanonicalTrade,
    CongressionalTradeRecord,
    InsiderTradeRecord,
    TraderRef,
    build_source_payload,
)

logger = logging.getLogger(__name__)

_AMOUNT_TOKEN = re.compile(r"\d[\d,]*")

RawRecord = Union[Dict[str, Any], CongressionalTradeRecord, InsiderTradeRecord]


def parse_transaction_type(value: Optional[str]) -> TransactionType:
    """Substring match: purchase/buy -> buy, sale/sell -> sell, anything else -> exchange."""
    text = (value or "").lower()
    if "purchase" in text or "buy" in text:
        return TransactionType.BUY
    if "sale" in text or "sell" in text:
        return TransactionType.SELL
    return TransactionType.EXCHANGE


def parse_insider_transaction_type(code: Optional[str], description: Optional[str] = None) -> TransactionType:
    """Acquired/disposed code first, then the free-text transaction type."""
    normalized = (code or "").strip().lower()
    if normalized in ("a", "acquired"):
        return TransactionType.BUY
    if normalized in ("d", "disposed"):
        return TransactionType.SELL
    return parse_transaction_type(description)


def parse_amount_range(amount: Optional[str]) -> Optional[Decimal]:
    """
    "$1,001 - $15,000" -> 8000.5, "$50,000" -> 50000, anything else -> None.

    Absent or unparseable ranges yield None, never zero.
    """
    if not amount:
        return None

    tokens = _AMOUNT_TOKEN.findall(amount)
    values = [Decimal(t.replace(",", "")) for t in tokens]

    if len(values) == 1:
        return values[0]
    if len(values) == 2:
        return (values[0] + values[1]) / 2
    return None


def parse_district_field(value: Optional[str], kind: TraderKind):
    """
    Senate: the field is the two-letter state code.
    House: state code plus district number, e.g. "CA17" -> ("CA", 17).

    Raises:
        NormalizationError: a Senate value longer than a state code
    """
    text = (value or "").strip().upper()
    if not text:
        return None, None

    if kind == TraderKind.SENATOR:
        if len(text) > 2:
            raise NormalizationError(
                "Invalid senate state code",
                context={"source_kind": kind.value, "district": text}
            )
        return text, None

    state_code = text[:2]
    remainder = text[2:].strip()
    district = None
    if remainder:
        try:
            district = int(remainder)
        except ValueError:
            district = None
    return state_code, district


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def _to_decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


class TradeNormalizer:
    """
    Normalize provider records into CanonicalTrade.

    Handles:
    - Chamber-specific district parsing
    - Transaction type mapping
    - Amount range midpoint estimation
    - Insider share * price valuation
    """

    def normalize(self, raw: RawRecord, source_kind: TraderKind) -> CanonicalTrade:
        """
        Normalize a raw record.

        Raises:
            NormalizationError: if the record is missing required fields
        """
        source_kind = TraderKind(source_kind)
        try:
            if source_kind == TraderKind.INSIDER:
                return self._normalize_insider(raw)
            return self._normalize_congressional(raw, source_kind)
        except PydanticValidationError as e:
            raise NormalizationError(
                "Record failed validation",
                context={"source_kind": source_kind.value, "field_errors": e.errors()},
                original_exception=e
            )

    def _normalize_congressional(self, raw: RawRecord, kind: TraderKind) -> CanonicalTrade:
        record = raw if isinstance(raw, CongressionalTradeRecord) else CongressionalTradeRecord.model_validate(raw)
        payload = raw if isinstance(raw, dict) else record.model_dump(by_alias=True)

        symbol = self._require_symbol(record.symbol, kind)
        name = record.display_name
        if not name:
            raise NormalizationError("Missing trader name", context={"source_kind": kind.value, "symbol": symbol})

        transaction_date = self._require_date(record.transaction_date, kind, symbol)
        state_code, district = parse_district_field(record.district, kind)
        position = Position.SENATOR if kind == TraderKind.SENATOR else Position.REPRESENTATIVE

        return CanonicalTrade(
            trader_type=TraderType.CONGRESSIONAL,
            trader=TraderRef(
                display_name=name,
                kind=kind,
                location_code=state_code,
                district=district,
                position=position.value,
            ),
            ticker_symbol=symbol,
            company_name=record.asset_description,
            asset_description=record.asset_description,
            transaction_date=transaction_date,
            transaction_type=parse_transaction_type(record.type),
            amount_range=record.amount,
            estimated_value=parse_amount_range(record.amount),
            filing_date=_parse_date(record.disclosure_date),
            source_data=build_source_payload(payload),
        )

    def _normalize_insider(self, raw: RawRecord) -> CanonicalTrade:
        kind = TraderKind.INSIDER
        record = raw if isinstance(raw, InsiderTradeRecord) else InsiderTradeRecord.model_validate(raw)
        payload = raw if isinstance(raw, dict) else record.model_dump(by_alias=True)

        symbol = self._require_symbol(record.symbol, kind)
        name = (record.reporting_name or "").strip()
        if not name:
            raise NormalizationError("Missing insider name", context={"source_kind": kind.value, "symbol": symbol})

        transaction_date = self._require_date(record.transaction_date, kind, symbol)
        quantity = _to_decimal(record.securities_transacted)
        price = _to_decimal(record.price)
        estimated_value = quantity * price if quantity is not None and price is not None else None

        return CanonicalTrade(
            trader_type=TraderType.CORPORATE,
            trader=TraderRef(
                display_name=name,
                kind=kind,
                location_code=symbol,
                position=record.type_of_owner,
            ),
            ticker_symbol=symbol,
            company_name=record.security_name,
            asset_description=record.security_name,
            transaction_date=transaction_date,
            transaction_type=parse_insider_transaction_type(
                record.acquisition_or_disposition, record.transaction_type
            ),
            estimated_value=estimated_value,
            quantity=quantity,
            filing_date=_parse_date(record.filing_date),
            source_data=build_source_payload(payload),
        )

    @staticmethod
    def _require_symbol(symbol: Optional[str], kind: TraderKind) -> str:
        text = (symbol or "").strip().upper()
        if not text:
            raise NormalizationError("Missing ticker symbol", context={"source_kind": kind.value})
        if len(text) > 10:
            raise NormalizationError(
                "Ticker symbol too long",
                context={"source_kind": kind.value, "symbol": text}
            )
        return text

    @staticmethod
    def _require_date(value: Optional[str], kind: TraderKind, symbol: str) -> date:
        parsed = _parse_date(value)
        if parsed is None:
            raise NormalizationError(
                "Missing or invalid transaction date",
                context={"source_kind": kind.value, "symbol": symbol, "transaction_date": value}
            )
        return parsed


_default_normalizer = TradeNormalizer()


def normalize(raw: RawRecord, source_kind: TraderKind) -> CanonicalTrade:
    return _default_normalizer.normalize(raw, source_kind)
