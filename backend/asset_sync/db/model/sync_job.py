from __future__ import annotations
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, DateTime, JSON, Text, ForeignKey, Index, CheckConstraint, text, func
from sqlalchemy.orm import Mapped, mapped_column

from asset_sync.db.base import Base, new_id
from asset_sync.utils.clock import now_utc


JOB_PENDING = "pending"
JOB_RUNNING = "running"
JOB_COMPLETED = "completed"
JOB_FAILED = "failed"
JOB_CANCELLED = "cancelled"

ACTIVE_STATUSES = (JOB_PENDING, JOB_RUNNING)
TERMINAL_STATUSES = (JOB_COMPLETED, JOB_FAILED, JOB_CANCELLED)

_ACTIVE_SQL = "status IN ('pending', 'running')"


"""
  sync_jobs table: one full (batch) sync run per row
  - status: pending -> running -> completed/failed, pending|running -> cancelled
  - errors: JSON list of {assetId, message, kind, transient}
  - at most one pending/running job per shop (partial unique index below)
"""
class SyncJob(Base):

    __tablename__ = "sync_jobs"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    shop_id: Mapped[str] = mapped_column(String(32), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=JOB_PENDING)
    trigger: Mapped[str] = mapped_column(String(16), nullable=False, default="manual")   # manual / scheduled

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=now_utc, server_default=func.now())
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    assets_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    assets_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    assets_updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)      # job-level failure

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','running','completed','failed','cancelled')",
            name="status_valid",
        ),
        Index(
            "uq_sync_jobs_active_shop",
            "shop_id",
            unique=True,
            postgresql_where=text(_ACTIVE_SQL),
            sqlite_where=text(_ACTIVE_SQL),
        ),
        Index("ix_sync_jobs_status_created", "status", "created_at"),
        Index("ix_sync_jobs_shop_created", "shop_id", "created_at"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
