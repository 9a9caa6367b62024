# sync_metrics repository

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from asset_sync.db.model.metric import SyncMetric


def insert_metric(
    db: Session,
    *,
    shop_id: str,
    metric_type: str,
    metric_name: str,
    value: float,
    sync_job_id: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> SyncMetric:
    row = SyncMetric(
        shop_id=shop_id,
        sync_job_id=sync_job_id,
        metric_type=metric_type,
        metric_name=metric_name,
        value=float(value),
        meta=metadata,
    )
    db.add(row)
    db.commit()
    return row


def delete_older_than(db: Session, cutoff: datetime, *, shop_id: Optional[str] = None) -> int:
    stmt = delete(SyncMetric).where(SyncMetric.recorded_at < cutoff)
    if shop_id:
        stmt = stmt.where(SyncMetric.shop_id == shop_id)
    res = db.execute(stmt.execution_options(synchronize_session=False))
    db.commit()
    return int(res.rowcount or 0)


def list_for_job(db: Session, sync_job_id: str, *, metric_type: Optional[str] = None) -> list[SyncMetric]:
    stmt = select(SyncMetric).where(SyncMetric.sync_job_id == sync_job_id)
    if metric_type:
        stmt = stmt.where(SyncMetric.metric_type == metric_type)
    return list(db.scalars(stmt.order_by(SyncMetric.recorded_at.asc())))


def latest_value(db: Session, sync_job_id: str, metric_type: str) -> Optional[float]:
    stmt = (
        select(SyncMetric.value)
        .where(SyncMetric.sync_job_id == sync_job_id, SyncMetric.metric_type == metric_type)
        .order_by(SyncMetric.recorded_at.desc())
        .limit(1)
    )
    return db.scalar(stmt)


def count_for_job(db: Session, sync_job_id: str, metric_type: str) -> int:
    stmt = select(func.count(SyncMetric.id)).where(
        SyncMetric.sync_job_id == sync_job_id, SyncMetric.metric_type == metric_type
    )
    return int(db.scalar(stmt) or 0)


def api_call_counts(db: Session, sync_job_id: str) -> dict[str, int]:
    stmt = (
        select(SyncMetric.metric_name, func.count(SyncMetric.id))
        .where(SyncMetric.sync_job_id == sync_job_id, SyncMetric.metric_type == "api_call")
        .group_by(SyncMetric.metric_name)
    )
    return {name: int(n) for name, n in db.execute(stmt)}
