# sync_jobs repository: plain SQL primitives, state rules live in orchestration/sync_jobs

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from asset_sync.db.model.sync_job import (
    SyncJob, JOB_PENDING, JOB_RUNNING, ACTIVE_STATUSES, TERMINAL_STATUSES,
)


# ---------- Query ----------
def get(db: Session, job_id: str, *, fresh: bool = False) -> Optional[SyncJob]:
    """fresh=True re-reads the row even if the session already holds it."""
    return db.get(SyncJob, job_id, populate_existing=fresh)


def get_status(db: Session, job_id: str) -> Optional[str]:
    return db.scalar(select(SyncJob.status).where(SyncJob.id == job_id))


def get_active_for_shop(db: Session, shop_id: str) -> Optional[SyncJob]:
    stmt = (
        select(SyncJob)
        .where(SyncJob.shop_id == shop_id, SyncJob.status.in_(ACTIVE_STATUSES))
        .order_by(SyncJob.created_at.asc())
    )
    return db.scalars(stmt).first()


def oldest_pending_id(db: Session) -> Optional[str]:
    stmt = (
        select(SyncJob.id)
        .where(SyncJob.status == JOB_PENDING)
        .order_by(SyncJob.created_at.asc(), SyncJob.id.asc())
        .limit(1)
    )
    return db.scalar(stmt)


def list_for_shop(db: Session, shop_id: str, *, limit: int = 20,
                  statuses: Optional[Iterable[str]] = None) -> list[SyncJob]:
    stmt = select(SyncJob).where(SyncJob.shop_id == shop_id)
    if statuses:
        stmt = stmt.where(SyncJob.status.in_(list(statuses)))
    stmt = stmt.order_by(SyncJob.created_at.desc()).limit(limit)
    return list(db.scalars(stmt))


def recent_finished(db: Session, shop_id: str, limit: int = 10) -> list[SyncJob]:
    """Latest completed/failed/cancelled jobs, newest first."""
    return list_for_shop(db, shop_id, limit=limit, statuses=TERMINAL_STATUSES)


def list_stale_running(db: Session, started_before: datetime) -> list[SyncJob]:
    stmt = (
        select(SyncJob)
        .where(SyncJob.status == JOB_RUNNING, SyncJob.started_at < started_before)
        .order_by(SyncJob.started_at.asc())
    )
    return list(db.scalars(stmt))


# ---------- Mutations ----------
def insert_pending(db: Session, shop_id: str, trigger: str = "manual") -> SyncJob:
    """Insert a pending job and commit. IntegrityError bubbles up when the shop already has an active job."""
    job = SyncJob(shop_id=shop_id, status=JOB_PENDING, trigger=trigger, errors=[])
    db.add(job)
    db.commit()
    return job


def conditional_update(db: Session, job_id: str, from_statuses: Iterable[str], **values) -> bool:
    """
    UPDATE sync_jobs SET ... WHERE id=:id AND status IN (:from_statuses)
    Single statement compare-and-swap; returns True when this caller won the transition.
    Commits on success, rolls back otherwise.
    """
    stmt = (
        update(SyncJob)
        .where(SyncJob.id == job_id, SyncJob.status.in_(list(from_statuses)))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    res = db.execute(stmt)
    if res.rowcount == 1:
        db.commit()
        return True
    db.rollback()
    return False
