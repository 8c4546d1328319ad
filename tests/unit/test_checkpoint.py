"""
Unit tests for the checkpoint store
"""

import pytest
from unittest.mock import MagicMock
from sqlalchemy.exc import OperationalError

from core.exceptions import CheckpointError
from ingestion.checkpoint import CheckpointStore, fingerprint_records
from models.base import SyncStatus, SyncType
from schemas.sync import SyncCounts


class TestCheckpointStore:

    @pytest.mark.asyncio
    async def test_ensure_creates_one_row_per_sync_type(self, session_factory):
        store = CheckpointStore(session_factory)

        await store.ensure()
        await store.ensure()

        rows = await store.list_all()
        assert [r.sync_type for r in rows] == ["senate", "house", "insiders"]
        assert all(r.status == SyncStatus.PENDING for r in rows)
        assert all(r.last_processed_index == -1 for r in rows)

    @pytest.mark.asyncio
    async def test_lifecycle(self, session_factory):
        store = CheckpointStore(session_factory)
        await store.ensure([SyncType.SENATE])

        begun = await store.begin(SyncType.SENATE, total_records=300)
        assert begun.status == SyncStatus.IN_PROGRESS
        assert begun.started_at is not None

        await store.advance(SyncType.SENATE, 99, SyncCounts(created=98, errors=2))
        checkpoint = await store.load(SyncType.SENATE)
        assert checkpoint.last_processed_index == 99
        assert checkpoint.created_count == 98
        assert checkpoint.error_count == 2

        await store.complete(SyncType.SENATE, SyncCounts(created=295, skipped=3, errors=2))
        checkpoint = await store.load(SyncType.SENATE)
        assert checkpoint.status == SyncStatus.COMPLETED
        assert checkpoint.completed_at is not None
        assert checkpoint.last_processed_index == 299
        assert checkpoint.skipped_count == 3

    @pytest.mark.asyncio
    async def test_fail_keeps_position_for_resume(self, session_factory):
        store = CheckpointStore(session_factory)
        await store.begin(SyncType.HOUSE, total_records=200)
        await store.advance(SyncType.HOUSE, 49, SyncCounts(created=50))

        await store.fail(SyncType.HOUSE, reason="Server error 503")
        checkpoint = await store.load(SyncType.HOUSE)
        assert checkpoint.status == SyncStatus.FAILED
        assert checkpoint.error_message == "Server error 503"
        assert checkpoint.last_processed_index == 49

        resumed = await store.begin(SyncType.HOUSE, total_records=200, resume=True)
        assert resumed.status == SyncStatus.IN_PROGRESS
        assert resumed.last_processed_index == 49
        assert resumed.created_count == 50
        assert resumed.error_message is None

    @pytest.mark.asyncio
    async def test_fresh_begin_resets_progress(self, session_factory):
        store = CheckpointStore(session_factory)
        await store.begin(SyncType.SENATE, total_records=100)
        await store.advance(SyncType.SENATE, 49, SyncCounts(created=50))

        restarted = await store.begin(SyncType.SENATE, total_records=120, resume=False)

        assert restarted.last_processed_index == -1
        assert restarted.created_count == 0
        assert restarted.total_records == 120

    @pytest.mark.asyncio
    async def test_reset(self, session_factory):
        store = CheckpointStore(session_factory)
        await store.begin(SyncType.INSIDERS, total_records=10)
        await store.complete(SyncType.INSIDERS, SyncCounts(created=10))

        checkpoint = await store.reset(SyncType.INSIDERS)

        assert checkpoint.status == SyncStatus.PENDING
        assert checkpoint.total_records == 0
        assert checkpoint.created_count == 0
        assert checkpoint.completed_at is None

    @pytest.mark.asyncio
    async def test_begin_stores_fingerprint_and_reset_clears_it(self, session_factory):
        store = CheckpointStore(session_factory)

        begun = await store.begin(SyncType.SENATE, total_records=10, fingerprint="abc123")
        assert begun.fingerprint == "abc123"

        checkpoint = await store.reset(SyncType.SENATE)
        assert checkpoint.fingerprint is None

    @pytest.mark.asyncio
    async def test_advance_without_row_raises(self, session_factory):
        store = CheckpointStore(session_factory)

        with pytest.raises(CheckpointError) as exc_info:
            await store.advance(SyncType.SENATE, 10, SyncCounts())

        assert exc_info.value.context["operation"] == "advance"

    @pytest.mark.asyncio
    async def test_database_errors_wrapped(self):
        session_factory = MagicMock(
            side_effect=OperationalError("SELECT", {}, Exception("database is locked"))
        )
        store = CheckpointStore(session_factory)

        with pytest.raises(CheckpointError):
            await store.begin(SyncType.SENATE, total_records=1)


class TestFingerprint:

    def test_same_records_same_fingerprint(self, senate_records):
        assert fingerprint_records(senate_records(50)) == fingerprint_records(senate_records(50))

    def test_shifted_records_change_fingerprint(self, senate_records):
        original = senate_records(50)
        shifted = senate_records(1, start=1000) + original[:-1]

        assert len(shifted) == len(original)
        assert fingerprint_records(shifted) != fingerprint_records(original)

    def test_ignores_fields_outside_identity(self, senate_records):
        original = senate_records(5)
        relinked = [dict(r, link="https://example.com/moved") for r in original]

        assert fingerprint_records(relinked) == fingerprint_records(original)

    def test_empty_fetch_differs_from_any_records(self, senate_records):
        empty = fingerprint_records([])
        assert len(empty) == 64
        assert empty != fingerprint_records(senate_records(1))
