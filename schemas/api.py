"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from models.base import SyncStatus


# ============================================================================
# Health Check Schemas
# ============================================================================

class CheckpointInfo(BaseModel):
    """Sync checkpoint information"""
    sync_type: str
    status: SyncStatus
    last_processed_index: int
    total_records: int
    fingerprint: Optional[str] = None
    created_count: int
    updated_count: int
    skipped_count: int
    error_count: int
    started_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    class Config:
        from_attributes = True
        use_enum_values = True


class HealthCheckResponse(BaseModel):
    """Health check response model"""
    database_connected: bool
    checkpoints: List[CheckpointInfo] = Field(default_factory=list)
    total_sources: int = 0
    failed_sources: int = 0
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    status: str = Field("healthy", description="Overall system status: healthy, degraded, unhealthy")

    @validator("status", pre=True, always=True)
    def determine_status(cls, v, values):
        """Determine overall health status"""
        if not values.get("database_connected", False):
            return "unhealthy"

        failed = values.get("failed_sources", 0)
        total = values.get("total_sources", 0)

        if total == 0 or failed == 0:
            return "healthy"
        if failed < total:
            return "degraded"
        return "unhealthy"


# ============================================================================
# Sync Schemas
# ============================================================================

class SyncRequest(BaseModel):
    """Manual sync trigger body; unset fields fall back to settings"""
    limit: Optional[int] = Field(None, ge=1, le=250)
    max_pages: Optional[int] = Field(None, ge=1)
    force_update: bool = False
    sync_insiders: Optional[bool] = None
    use_checkpoints: bool = True
    batch_size: Optional[int] = Field(None, ge=1)

    def to_options_dict(self) -> Dict[str, Any]:
        return self.dict(exclude_none=True)


class SyncAcceptedResponse(BaseModel):
    message: str
    options: Dict[str, Any]
    requested_at: datetime = Field(default_factory=datetime.utcnow)


class SyncStatusResponse(BaseModel):
    is_running: bool
    last_run_time: Optional[datetime] = None
    last_result: Optional[Dict[str, Any]] = None
    rate_limits: Optional[Dict[str, Any]] = None
