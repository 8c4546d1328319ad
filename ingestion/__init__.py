"""
Sync pipeline components for trade-disclosure ingestion.

Modules:
    dispatcher: Rate-limited FIFO dispatcher (minute/hour/day windows, retries)
    fetcher: Paged crawler with a configurable page-error policy
    base: Abstract base class for paginated disclosure sources
    reconciler: Create / update / skip decision per canonical trade
    checkpoint: Per-sync-type resumable progress
    runner: Sync orchestrator (fetch -> normalize -> reconcile -> checkpoint)
    scheduler: APScheduler integration for daily and incremental syncs

Subpackages:
    extractors: FMP HTTP client and the Senate / House / Insider sources
    transformers: Provider record normalization
    loaders: TradeStore interface and its SQLAlchemy implementation

Pipeline:
    1. Fetch - crawl every page of a source through the shared dispatcher
    2. Normalize - map each raw record to a CanonicalTrade
    3. Reconcile - find-or-create trader and ticker, then create, update or skip
    4. Checkpoint - persist position and counts every batch_size records

    A bad record is counted and logged without aborting the batch; an
    unreachable store or rejected credentials stop the source.

Usage:
    from ingestion.extractors.fmp_client import FMPClient
    from ingestion.extractors.fmp_extractor import build_sources
    from ingestion.loaders.trade_store import SQLAlchemyTradeStore
    from ingestion.reconciler import ReconciliationEngine
    from ingestion.checkpoint import CheckpointStore
    from ingestion.runner import SyncOrchestrator

Example:
    async with FMPClient() as client:
        orchestrator = SyncOrchestrator(
            sources=build_sources(client),
            engine=ReconciliationEngine(SQLAlchemyTradeStore(session_factory)),
            checkpoints=CheckpointStore(session_factory),
        )
        result = await orchestrator.run(SyncOptions(force_update=False))

    print(f"Created {result.created_count} trades")
"""

__all__ = [
    "RateLimitedDispatcher",
    "PagedFetcher",
    "DataSource",
    "ReconciliationEngine",
    "CheckpointStore",
    "SyncOrchestrator",
    "SyncScheduler",
    "FMPClient",
    "TradeNormalizer",
    "SQLAlchemyTradeStore",
]
