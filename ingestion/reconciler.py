"""
Reconciliation engine: decides create / update / skip for each canonical trade.

Decision table (keyed by the trade identity):

    existing?   force_update   action
    no          any            create
    yes         False          skip
    yes         True           update in place (identity unchanged)
"""

from typing import Optional
import logging

from sqlalchemy.exc import InterfaceError, OperationalError

from core.exceptions import (
    DatabaseConnectionError,
    PersistenceConflictError,
    RecordError,
    SyncException
)
from ingestion.loaders.trade_store import TradeStore
from ingestion.transformers.normalizer import TradeNormalizer, RawRecord
from models.base import TraderKind
from schemas.sync import ReconcileAction, ReconcileOutcome
from schemas.trades import CanonicalTrade

logger = logging.getLogger(__name__)

# Failures that mean the store itself is unreachable, not that the record is bad
CONNECTIVITY_ERRORS = (OperationalError, InterfaceError, OSError)


class ReconciliationEngine:
    """
    Applies canonical trades to the TradeStore idempotently.

    Responsibilities:
    - Resolve trader and ticker identities (find-or-create)
    - Look up the existing trade by identity key
    - Apply the decision table
    - Turn per-record failures into RecordError with enough context to
      find the source record again
    """

    def __init__(self, store: TradeStore, normalizer: Optional[TradeNormalizer] = None):
        self.store = store
        self.normalizer = normalizer or TradeNormalizer()

    async def reconcile(self, canonical: CanonicalTrade, force_update: bool = False) -> ReconcileOutcome:
        trader = canonical.trader
        trader_id = await self.store.find_or_create_trader(
            trader.display_name,
            trader.kind,
            trader.location_code,
            district=trader.district,
            position=trader.position,
            company_name=canonical.company_name if trader.kind == TraderKind.INSIDER else None,
        )
        await self.store.find_or_create_ticker(canonical.ticker_symbol, canonical.company_name)

        key = canonical.identity_key(trader_id)
        data = canonical.to_trade_data(trader_id)

        existing = await self.store.find_existing_trade(key)
        if existing is None:
            try:
                trade = await self.store.create_trade(data)
                return ReconcileOutcome(ReconcileAction.CREATED, trade)
            except PersistenceConflictError:
                # Another writer inserted the same identity in between
                existing = await self.store.find_existing_trade(key)
                if existing is None:
                    raise
                logger.warning(f"Identity conflict resolved by re-read: {key}")

        if not force_update:
            return ReconcileOutcome(ReconcileAction.SKIPPED, existing)

        trade = await self.store.update_trade(existing.id, data)
        return ReconcileOutcome(ReconcileAction.UPDATED, trade)

    async def process(
        self,
        raw: RawRecord,
        source_kind: TraderKind,
        position: int,
        force_update: bool = False,
        label: Optional[str] = None
    ) -> ReconcileOutcome:
        """
        Normalize and reconcile one raw record.

        Args:
            raw: Provider record
            source_kind: Which normalizer branch to use
            position: 1-based position of the record in the fetched set
            force_update: Update existing trades instead of skipping them
            label: Source label for error messages (Senate, House, Insider)

        Raises:
            RecordError: the record could not be processed; the batch continues
            DatabaseConnectionError: the store is unreachable; the source must stop
        """
        label = label or TraderKind(source_kind).value
        try:
            canonical = self.normalizer.normalize(raw, source_kind)
            return await self.reconcile(canonical, force_update)
        except CONNECTIVITY_ERRORS as e:
            raise DatabaseConnectionError(
                "Trade store unreachable",
                context={"source": label, "position": position},
                original_exception=e
            )
        except DatabaseConnectionError:
            raise
        except Exception as e:
            message = e.message if isinstance(e, SyncException) else str(e)
            raise RecordError(
                f"Error processing {label} trade {position}: {message}",
                context={
                    "source": label,
                    "position": position,
                    "symbol": _field(raw, "symbol"),
                    "trader": _field(raw, "office") or _field(raw, "reportingName"),
                },
                original_exception=e
            )


def _field(raw: RawRecord, name: str):
    if isinstance(raw, dict):
        return raw.get(name)
    return raw.model_dump(by_alias=True).get(name)
