"""
Checkpoint management for resumable syncs.

One sync_progress row per sync type. Lifecycle:

    pending --begin--> in_progress --advance--> in_progress --complete--> completed
                            |
                            +--fail--> failed --begin(resume)--> in_progress
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence
import hashlib
import json
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.exceptions import CheckpointError
from models.base import SyncStatus, SyncType
from models.checkpoint import SyncCheckpoint
from schemas.sync import SyncCounts

logger = logging.getLogger(__name__)

# Provider fields that identify a record and its position in the feed
FINGERPRINT_FIELDS = (
    "symbol",
    "office",
    "firstName",
    "lastName",
    "reportingName",
    "transactionDate",
    "type",
    "transactionType",
    "acquisitionOrDisposition",
    "amount",
    "securitiesTransacted",
)


def fingerprint_records(records: Sequence[Dict[str, Any]]) -> str:
    """
    Hash of the ordered identity fields of a fetched set.

    Two fetches share a fingerprint only when every position holds the same
    record, so a checkpoint index is meaningful for both.
    """
    digest = hashlib.sha256()
    for record in records:
        row = [record.get(name) for name in FINGERPRINT_FIELDS]
        digest.update(json.dumps(row, default=str).encode("utf-8"))
        digest.update(b"\n")
    return digest.hexdigest()


class CheckpointStore:
    """
    Persists per-sync-type progress (index, counts, status).

    Every call runs in its own session; the orchestrator's single-flight
    guard guarantees one writer per row.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def ensure(self, sync_types: Iterable[SyncType] = tuple(SyncType)):
        """Create missing checkpoint rows (status pending)."""
        for sync_type in sync_types:
            sync_type = SyncType(sync_type)
            async with self.session_factory() as session:
                existing = await self._get(session, sync_type)
                if existing is not None:
                    continue
                session.add(SyncCheckpoint(
                    sync_type=sync_type.value,
                    status=SyncStatus.PENDING,
                    last_processed_index=-1,
                    total_records=0,
                ))
                try:
                    await session.commit()
                    logger.info(f"Created checkpoint row for {sync_type.value}")
                except IntegrityError:
                    await session.rollback()

    async def load(self, sync_type: SyncType) -> Optional[SyncCheckpoint]:
        async with self.session_factory() as session:
            return await self._get(session, SyncType(sync_type))

    async def list_all(self) -> List[SyncCheckpoint]:
        async with self.session_factory() as session:
            result = await session.execute(select(SyncCheckpoint).order_by(SyncCheckpoint.id))
            return list(result.scalars().all())

    async def begin(
        self,
        sync_type: SyncType,
        total_records: int,
        resume: bool = False,
        fingerprint: Optional[str] = None
    ) -> SyncCheckpoint:
        """
        Move the checkpoint to in_progress.

        A fresh run resets position and counters; a resumed run keeps them.
        """
        async def apply(checkpoint: SyncCheckpoint):
            now = datetime.utcnow()
            checkpoint.status = SyncStatus.IN_PROGRESS
            checkpoint.total_records = total_records
            checkpoint.fingerprint = fingerprint
            checkpoint.error_message = None
            checkpoint.completed_at = None
            if not resume:
                checkpoint.last_processed_index = -1
                checkpoint.created_count = 0
                checkpoint.updated_count = 0
                checkpoint.skipped_count = 0
                checkpoint.error_count = 0
                checkpoint.started_at = now
            elif checkpoint.started_at is None:
                checkpoint.started_at = now

        return await self._mutate(sync_type, "begin", apply, create=True)

    async def advance(self, sync_type: SyncType, index: int, counts: SyncCounts) -> SyncCheckpoint:
        """Record that every record up to and including `index` (0-based) is done."""
        async def apply(checkpoint: SyncCheckpoint):
            checkpoint.last_processed_index = index
            self._apply_counts(checkpoint, counts)

        return await self._mutate(sync_type, "advance", apply)

    async def complete(self, sync_type: SyncType, counts: Optional[SyncCounts] = None) -> SyncCheckpoint:
        async def apply(checkpoint: SyncCheckpoint):
            checkpoint.status = SyncStatus.COMPLETED
            checkpoint.completed_at = datetime.utcnow()
            checkpoint.error_message = None
            if counts is not None:
                self._apply_counts(checkpoint, counts)
                checkpoint.last_processed_index = max(checkpoint.total_records - 1, -1)

        return await self._mutate(sync_type, "complete", apply)

    async def fail(
        self,
        sync_type: SyncType,
        reason: str,
        index: Optional[int] = None,
        counts: Optional[SyncCounts] = None
    ) -> SyncCheckpoint:
        """Mark failed, keeping last_processed_index for a later resume."""
        async def apply(checkpoint: SyncCheckpoint):
            checkpoint.status = SyncStatus.FAILED
            checkpoint.error_message = reason[:2000]
            if index is not None:
                checkpoint.last_processed_index = index
            if counts is not None:
                self._apply_counts(checkpoint, counts)

        return await self._mutate(sync_type, "fail", apply)

    async def reset(self, sync_type: SyncType) -> SyncCheckpoint:
        async def apply(checkpoint: SyncCheckpoint):
            checkpoint.status = SyncStatus.PENDING
            checkpoint.last_processed_index = -1
            checkpoint.total_records = 0
            checkpoint.fingerprint = None
            checkpoint.created_count = 0
            checkpoint.updated_count = 0
            checkpoint.skipped_count = 0
            checkpoint.error_count = 0
            checkpoint.started_at = None
            checkpoint.completed_at = None
            checkpoint.error_message = None

        return await self._mutate(sync_type, "reset", apply, create=True)

    # ------------------------------------------------------------------

    @staticmethod
    async def _get(session, sync_type: SyncType) -> Optional[SyncCheckpoint]:
        result = await session.execute(
            select(SyncCheckpoint).where(SyncCheckpoint.sync_type == sync_type.value)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _apply_counts(checkpoint: SyncCheckpoint, counts: SyncCounts):
        checkpoint.created_count = counts.created
        checkpoint.updated_count = counts.updated
        checkpoint.skipped_count = counts.skipped
        checkpoint.error_count = counts.errors

    async def _mutate(self, sync_type: SyncType, operation: str, apply, create: bool = False) -> SyncCheckpoint:
        sync_type = SyncType(sync_type)
        try:
            async with self.session_factory() as session:
                checkpoint = await self._get(session, sync_type)
                if checkpoint is None:
                    if not create:
                        raise CheckpointError(
                            f"No checkpoint row for {sync_type.value}",
                            context={"sync_type": sync_type.value, "operation": operation}
                        )
                    checkpoint = SyncCheckpoint(sync_type=sync_type.value)
                    session.add(checkpoint)
                await apply(checkpoint)
                checkpoint.updated_at = datetime.utcnow()
                await session.commit()
                return checkpoint
        except SQLAlchemyError as e:
            raise CheckpointError(
                f"Checkpoint {operation} failed for {sync_type.value}",
                context={"sync_type": sync_type.value, "operation": operation},
                original_exception=e
            )
