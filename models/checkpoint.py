from sqlalchemy import Column, Integer, String, Enum, DateTime, Text, Index, CheckConstraint
from datetime import datetime
from models.base import Base, SyncStatus


class SyncCheckpoint(Base):
    """
    Tracks resumable progress per sync type.

    Purpose:
    - Resume a long backfill at last_processed_index + 1
    - Carry created/updated/skipped/error counts across restarts

    Design:
    - One row per sync type (senate, house, insiders), seeded at setup
    - last_processed_index is -1 until the first record of a run is confirmed
    - A run resumes only when the fresh fetch has the same fingerprint
    """
    __tablename__ = "sync_progress"

    id = Column(Integer, primary_key=True, autoincrement=True)

    sync_type = Column(String(50), nullable=False)

    # Position
    last_processed_index = Column(Integer, nullable=False, default=-1)
    total_records = Column(Integer, nullable=False, default=0)
    # SHA-256 over the ordered identity fields of the fetched set
    fingerprint = Column(String(64), nullable=True)

    # Counters
    created_count = Column(Integer, nullable=False, default=0)
    updated_count = Column(Integer, nullable=False, default=0)
    skipped_count = Column(Integer, nullable=False, default=0)
    error_count = Column(Integer, nullable=False, default=0)

    # Status
    status = Column(
        Enum(SyncStatus, values_callable=lambda e: [m.value for m in e], native_enum=False, length=20),
        nullable=False,
        default=SyncStatus.PENDING
    )
    error_message = Column(Text, nullable=True)

    # Timestamps
    started_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_sync_progress_type", "sync_type", unique=True),
        CheckConstraint(
            "status IN ('pending', 'in_progress', 'completed', 'failed')",
            name="ck_sync_progress_status"
        ),
    )

    def __repr__(self):
        return (
            f"<SyncCheckpoint {self.sync_type} status={self.status} "
            f"index={self.last_processed_index}/{self.total_records}>"
        )
