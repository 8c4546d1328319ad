"""
API endpoint tests
"""

import pytest
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from api.main import app
from api.dependencies import get_db
from models.base import SyncStatus


def make_checkpoint(sync_type, status=SyncStatus.COMPLETED, **overrides):
    values = dict(
        sync_type=sync_type,
        status=status,
        last_processed_index=99,
        total_records=100,
        created_count=100,
        updated_count=0,
        skipped_count=0,
        error_count=0,
        started_at=datetime(2025, 1, 1, 2, 0),
        updated_at=datetime(2025, 1, 1, 2, 5),
        completed_at=datetime(2025, 1, 1, 2, 5),
        error_message=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def make_db(checkpoints=None, connected=True):
    db = MagicMock()
    if not connected:
        db.execute = AsyncMock(side_effect=OperationalError("SELECT 1", {}, Exception("connection refused")))
        return db

    rows = MagicMock()
    rows.scalars.return_value.all.return_value = checkpoints or []
    db.execute = AsyncMock(side_effect=[MagicMock(), rows])
    return db


@pytest.fixture
def scheduler():
    fake = MagicMock()
    fake.aclose = AsyncMock()
    fake.run_sync_job = AsyncMock()
    fake.run_historical_backfill = AsyncMock()
    fake.checkpoints.list_all = AsyncMock(return_value=[])
    fake.force_stop.return_value = False
    fake.get_status.return_value = {
        "is_running": False,
        "last_run_time": None,
        "last_result": None,
        "rate_limits": {"minute": {"used": 0, "limit": 300, "remaining": 300}},
    }
    return fake


@pytest.fixture
def client(scheduler):
    """Create test client with the scheduler and database replaced"""
    app.state.scheduler = scheduler
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    app.state.scheduler = None


def override_db(db):
    async def override_get_db():
        yield db
    app.dependency_overrides[get_db] = override_get_db


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["endpoints"]["sync"] == "/sync/now"


def test_health_healthy(client):
    override_db(make_db([make_checkpoint("senate"), make_checkpoint("house")]))

    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database_connected"] is True
    assert data["total_sources"] == 2
    assert data["checkpoints"][0]["sync_type"] == "senate"
    assert data["checkpoints"][0]["status"] == "completed"


def test_health_degraded_when_a_source_failed(client):
    override_db(make_db([
        make_checkpoint("senate"),
        make_checkpoint("house", status=SyncStatus.FAILED, error_message="Server error 503"),
    ]))

    data = client.get("/health").json()

    assert data["status"] == "degraded"
    assert data["failed_sources"] == 1


def test_health_unhealthy_without_database(client):
    override_db(make_db(connected=False))

    data = client.get("/health").json()

    assert data["status"] == "unhealthy"
    assert data["database_connected"] is False
    assert data["checkpoints"] == []


def test_request_id_echoed(client):
    override_db(make_db())

    response = client.get("/health", headers={"X-Request-ID": "abc-123"})

    assert response.headers["X-Request-ID"] == "abc-123"
    assert "X-API-Latency-ms" in response.headers


def test_trigger_sync(client, scheduler):
    response = client.post("/sync/now", json={"limit": 50, "force_update": True})

    assert response.status_code == 202
    data = response.json()
    assert data["options"]["limit"] == 50
    assert data["options"]["force_update"] is True
    scheduler.run_sync_job.assert_called_once()
    assert scheduler.run_sync_job.call_args.args[0].limit == 50


def test_trigger_sync_without_body(client, scheduler):
    response = client.post("/sync/now")

    assert response.status_code == 202
    scheduler.run_sync_job.assert_called_once()


def test_trigger_sync_rejects_oversized_page(client):
    response = client.post("/sync/now", json={"limit": 1000})
    assert response.status_code == 422


def test_trigger_sync_conflict_while_running(client, scheduler):
    scheduler.get_status.return_value = {"is_running": True, "last_run_time": None, "last_result": None}

    response = client.post("/sync/now")

    assert response.status_code == 409
    scheduler.run_sync_job.assert_not_called()


def test_trigger_backfill(client, scheduler):
    response = client.post("/sync/backfill", params={"sync_insiders": True})

    assert response.status_code == 202
    assert response.json()["options"]["sync_insiders"] is True
    scheduler.run_historical_backfill.assert_called_once_with(True)


def test_stop(client, scheduler):
    assert client.post("/sync/stop").json() == {"stopping": False}

    scheduler.force_stop.return_value = True
    assert client.post("/sync/stop").json() == {"stopping": True}


def test_status(client):
    data = client.get("/sync/status").json()

    assert data["is_running"] is False
    assert data["rate_limits"]["minute"]["remaining"] == 300


def test_checkpoints(client, scheduler):
    scheduler.checkpoints.list_all.return_value = [make_checkpoint("senate", status=SyncStatus.IN_PROGRESS)]

    data = client.get("/sync/checkpoints").json()

    assert data[0]["sync_type"] == "senate"
    assert data[0]["status"] == "in_progress"
