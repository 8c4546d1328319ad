"""
Pydantic schemas for data validation and serialization.

Schemas:
    trades: Provider records (FMP senate/house/insider rows) and the
            canonical trade representation with its identity key
    sync: Sync options, counters, reconcile outcomes and SyncResult
    api: API endpoint request/response schemas

Usage:
    from schemas.trades import CongressionalTradeRecord, CanonicalTrade
    from schemas.sync import SyncOptions, SyncResult

Example:
    record = CongressionalTradeRecord.model_validate(row)
    options = SyncOptions(limit=100, force_update=True)

Validation:
    Provider records accept the camelCase field names FMP returns and keep
    unknown fields, so the full payload survives for audit.
"""

__all__ = [
    "CongressionalTradeRecord",
    "InsiderTradeRecord",
    "TraderRef",
    "CanonicalTrade",
    "IdentityKey",
    "SyncOptions",
    "SyncCounts",
    "SyncResult",
    "ReconcileAction",
    "ReconcileOutcome",
    "HealthCheckResponse",
    "CheckpointInfo",
    "SyncRequest",
    "SyncStatusResponse",
]
