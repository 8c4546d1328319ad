"""
Pydantic schemas for sync options, counters and results
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any, NamedTuple
from datetime import datetime
import enum

from core.config import settings

# Provider hard cap for the `limit` query parameter
MAX_PAGE_SIZE = 250


class SyncOptions(BaseModel):
    """Options supplied by the scheduler, the API or the CLI"""
    limit: int = Field(default_factory=lambda: settings.SYNC_PAGE_SIZE, ge=1)
    max_pages: int = Field(default_factory=lambda: settings.SYNC_MAX_PAGES, ge=1)
    force_update: bool = False
    sync_insiders: bool = Field(default_factory=lambda: settings.SYNC_INSIDERS)
    use_checkpoints: bool = True
    batch_size: int = Field(default_factory=lambda: settings.CHECKPOINT_BATCH_SIZE, ge=1)

    @validator("limit")
    def clamp_limit(cls, v):
        return min(v, MAX_PAGE_SIZE)


class ReconcileAction(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


class ReconcileOutcome(NamedTuple):
    action: ReconcileAction
    trade: Any


class SyncCounts(BaseModel):
    """Running counters, persisted on the checkpoint row"""
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    @property
    def processed(self) -> int:
        return self.created + self.updated + self.skipped + self.errors

    def record(self, action: ReconcileAction):
        if action == ReconcileAction.CREATED:
            self.created += 1
        elif action == ReconcileAction.UPDATED:
            self.updated += 1
        else:
            self.skipped += 1


class SyncResult(BaseModel):
    """Aggregate outcome of one source or of a whole run"""
    success: bool = True
    sync_type: Optional[str] = None
    processed_count: int = 0
    created_count: int = 0
    updated_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    errors: List[str] = Field(default_factory=list)
    duration: float = 0.0
    pages_fetched: int = 0
    pages_failed: int = 0
    resumed_from: Optional[int] = None
    stopped: bool = False
    started_at: datetime = Field(default_factory=datetime.utcnow)
    sources: Dict[str, "SyncResult"] = Field(default_factory=dict)

    def apply_counts(self, counts: SyncCounts):
        self.processed_count = counts.processed
        self.created_count = counts.created
        self.updated_count = counts.updated
        self.skipped_count = counts.skipped
        self.error_count = counts.errors

    @classmethod
    def combine(cls, results: List["SyncResult"], started_at: Optional[datetime] = None) -> "SyncResult":
        combined = cls(started_at=started_at or datetime.utcnow())
        for result in results:
            combined.processed_count += result.processed_count
            combined.created_count += result.created_count
            combined.updated_count += result.updated_count
            combined.skipped_count += result.skipped_count
            combined.error_count += result.error_count
            combined.errors.extend(result.errors)
            combined.pages_fetched += result.pages_fetched
            combined.pages_failed += result.pages_failed
            combined.stopped = combined.stopped or result.stopped
            combined.success = combined.success and result.success
            if result.sync_type:
                combined.sources[result.sync_type] = result
        return combined

    def summary(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "processed": self.processed_count,
            "created": self.created_count,
            "updated": self.updated_count,
            "skipped": self.skipped_count,
            "errors": len(self.errors),
            "duration": round(self.duration, 2),
        }


SyncResult.model_rebuild()
