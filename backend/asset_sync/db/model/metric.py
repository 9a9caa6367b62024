from __future__ import annotations
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Float, DateTime, JSON, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from asset_sync.db.base import Base, new_id
from asset_sync.utils.clock import now_utc


# metric_type values
API_CALL = "api_call"
SYNC_DURATION = "sync_duration"
THROUGHPUT = "throughput"
ERROR_RATE = "error_rate"
RATE_LIMIT_HIT = "rate_limit_hit"


"""
  sync_metrics: write-only operational metrics, pruned by age
  - no FK on sync_job_id: metrics may outlive pruned jobs
"""
class SyncMetric(Base):

    __tablename__ = "sync_metrics"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    shop_id: Mapped[str] = mapped_column(String(32), nullable=False)
    sync_job_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    metric_type: Mapped[str] = mapped_column(String(32), nullable=False)
    metric_name: Mapped[str] = mapped_column(String(128), nullable=False)
    value: Mapped[float] = mapped_column(Float, nullable=False)
    # "metadata" is reserved on declarative classes
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=now_utc, server_default=func.now())

    __table_args__ = (
        Index("ix_sync_metrics_shop_recorded", "shop_id", "recorded_at"),
        Index("ix_sync_metrics_job_type", "sync_job_id", "metric_type"),
        Index("ix_sync_metrics_recorded", "recorded_at"),
    )
