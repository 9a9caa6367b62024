"""
Sync job state machine.

    pending -> running -> completed | failed
    pending | running -> cancelled

Every transition is a single conditional UPDATE (compare-and-swap on status),
so a late worker can never move a job out of a terminal state. At most one
pending/running job exists per shop; the partial unique index backs the
application check in enqueue().
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable, Optional, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from asset_sync.core.config import settings
from asset_sync.db.model.sync_job import (
    SyncJob, JOB_PENDING, JOB_RUNNING, JOB_COMPLETED, JOB_FAILED, JOB_CANCELLED, ACTIVE_STATUSES,
)
from asset_sync.observability.alerts import AlertSink, check_sync_job_alerts, dispatch_alerts
from asset_sync.orchestration.asset_sync.batch_sync import sync_all
from asset_sync.orchestration.asset_sync.context import SyncContext, build_sync_context
from asset_sync.orchestration.asset_sync.errors import (
    ConfigurationError, ConflictError, InvalidStateTransition, NotFoundError,
)
from asset_sync.repository import shop_repo, sync_job_repo
from asset_sync.utils.clock import now_utc

logger = logging.getLogger(__name__)


MAX_CLAIM_ATTEMPTS = 5


class JobOutcome(Protocol):
    """Anything with batch-style counters (BatchSyncResult, RetryResult-like)."""
    processed: int
    created: int
    updated: int
    errors: list


# ---------- transitions ----------
def enqueue(db: Session, shop_id: str, trigger: str = "manual") -> SyncJob:
    if shop_repo.get(db, shop_id) is None:
        raise NotFoundError(f"shop {shop_id} not found")

    active = sync_job_repo.get_active_for_shop(db, shop_id)
    if active is not None:
        raise ConflictError(f"sync job {active.id} is already {active.status} for this shop")
    try:
        job = sync_job_repo.insert_pending(db, shop_id, trigger)
    except IntegrityError as e:
        # lost the race against a concurrent enqueue; the index said no
        db.rollback()
        raise ConflictError("a sync job is already pending or running for this shop") from e

    logger.info("sync.job.enqueued job_id=%s shop_id=%s trigger=%s", job.id, shop_id, trigger)
    return job


def claim_next(db: Session) -> Optional[SyncJob]:
    """Oldest pending job -> running. Returns None when the queue is empty."""
    for _ in range(MAX_CLAIM_ATTEMPTS):
        job_id = sync_job_repo.oldest_pending_id(db)
        if job_id is None:
            return None
        if sync_job_repo.conditional_update(db, job_id, (JOB_PENDING,), status=JOB_RUNNING, started_at=now_utc()):
            logger.info("sync.job.claimed job_id=%s", job_id)
            return sync_job_repo.get(db, job_id, fresh=True)
        logger.debug("sync.job.claim_lost job_id=%s", job_id)
    return None


def cancel(db: Session, job_id: str, shop_id: Optional[str] = None) -> SyncJob:
    for _ in range(2):   # pending may flip to running between read and write
        job = _get_owned(db, job_id, shop_id)
        if job.status not in ACTIVE_STATUSES:
            raise InvalidStateTransition(f"cannot cancel a {job.status} job")
        if sync_job_repo.conditional_update(
            db, job_id, ACTIVE_STATUSES, status=JOB_CANCELLED, completed_at=now_utc(),
        ):
            logger.info("sync.job.cancelled job_id=%s from=%s", job_id, job.status)
            return sync_job_repo.get(db, job_id, fresh=True)

    job = _get_owned(db, job_id, shop_id)
    raise InvalidStateTransition(f"cannot cancel a {job.status} job")


def complete(db: Session, job_id: str, result: JobOutcome) -> SyncJob:
    return _finish(db, job_id, JOB_COMPLETED, result=result)


def fail(db: Session, job_id: str, message: str, result: Optional[JobOutcome] = None) -> SyncJob:
    return _finish(db, job_id, JOB_FAILED, result=result, message=message)


def is_cancelled(db: Session, job_id: str) -> bool:
    return sync_job_repo.get_status(db, job_id) == JOB_CANCELLED


def reap_stale_jobs(db: Session, older_than: Optional[timedelta] = None) -> list[str]:
    """Fail running jobs whose worker stopped reporting; returns the reaped ids."""
    age = older_than or timedelta(minutes=settings.SYNC_JOB_STALE_MINUTES)
    cutoff = now_utc() - age
    reaped = []
    for job in sync_job_repo.list_stale_running(db, cutoff):
        minutes = int(age.total_seconds() // 60)
        if sync_job_repo.conditional_update(
            db, job.id, (JOB_RUNNING,),
            status=JOB_FAILED,
            completed_at=now_utc(),
            error=f"stale: no completion reported within {minutes} minutes",
        ):
            reaped.append(job.id)
            logger.warning("sync.job.reaped job_id=%s shop_id=%s started_at=%s", job.id, job.shop_id, job.started_at)
    return reaped


# ---------- worker routine ----------
def run_job(
    db: Session,
    job_id: str,
    *,
    context_factory: Callable[..., SyncContext] = build_sync_context,
    alert_sink: Optional[AlertSink] = None,
    max_workers: Optional[int] = None,
) -> SyncJob:
    """
    Execute a claimed (running) job end to end:
    build context -> sync_all -> complete/fail -> metrics -> alerts
    """
    job = sync_job_repo.get(db, job_id, fresh=True)
    if job is None:
        raise NotFoundError(f"sync job {job_id} not found")

    try:
        ctx = context_factory(db, job.shop_id, job.id)
    except ConfigurationError as e:
        logger.error("sync.job.misconfigured job_id=%s shop_id=%s err=%s", job_id, job.shop_id, e)
        return fail(db, job_id, str(e))

    try:
        result = sync_all(ctx, should_continue=lambda: not is_cancelled(db, job_id), max_workers=max_workers)
    except Exception as e:
        logger.exception("sync.job.crashed job_id=%s shop_id=%s", job_id, job.shop_id)
        finished = fail(db, job_id, f"{type(e).__name__}: {e}")
        _evaluate_alerts(db, finished, alert_sink)
        return finished

    finished = complete(db, job_id, result)
    _record_job_metrics(ctx, result)
    _evaluate_alerts(db, finished, alert_sink)
    return finished


# ---------- helpers ----------
def _finish(db: Session, job_id: str, status: str, *, result: Optional[JobOutcome] = None,
            message: Optional[str] = None) -> SyncJob:
    counts = _counts(result)
    values = dict(counts, status=status, completed_at=now_utc())
    if message is not None:
        values["error"] = message

    if sync_job_repo.conditional_update(db, job_id, (JOB_RUNNING,), **values):
        logger.info("sync.job.%s job_id=%s processed=%s errors=%s",
                    status, job_id, counts.get("assets_processed"), len(counts.get("errors") or []))
        return sync_job_repo.get(db, job_id, fresh=True)

    current = sync_job_repo.get_status(db, job_id)
    if current is None:
        raise NotFoundError(f"sync job {job_id} not found")
    if current == JOB_CANCELLED:
        # cancelled while running: keep the status, keep what was done
        if counts:
            sync_job_repo.conditional_update(db, job_id, (JOB_CANCELLED,), **counts)
        logger.info("sync.job.finish_after_cancel job_id=%s wanted=%s", job_id, status)
        return sync_job_repo.get(db, job_id, fresh=True)
    raise InvalidStateTransition(f"cannot move a {current} job to {status}")


def _counts(result: Optional[JobOutcome]) -> dict:
    if result is None:
        return {}
    return {
        "assets_processed": result.processed,
        "assets_created": result.created,
        "assets_updated": result.updated,
        "errors": list(result.errors),
    }


def _get_owned(db: Session, job_id: str, shop_id: Optional[str]) -> SyncJob:
    job = sync_job_repo.get(db, job_id, fresh=True)
    if job is None or (shop_id is not None and job.shop_id != shop_id):
        raise NotFoundError(f"sync job {job_id} not found")
    return job


def _record_job_metrics(ctx: SyncContext, result) -> None:
    duration = max(0.0, float(result.duration_seconds))
    ctx.metrics.record_sync_duration(duration)
    if result.processed:
        if duration > 0:
            ctx.metrics.record_throughput(result.processed / duration)
        ctx.metrics.record_error_rate(100.0 * result.failed / result.processed)
    else:
        ctx.metrics.record_error_rate(0.0)


def _evaluate_alerts(db: Session, job: SyncJob, sink: Optional[AlertSink]) -> None:
    # job already finished: alert failures stop here
    try:
        alerts = check_sync_job_alerts(db, job.shop_id, job.id)
    except Exception:
        db.rollback()
        logger.warning("sync.job.alerts_failed job_id=%s shop_id=%s", job.id, job.shop_id, exc_info=True)
        return
    if alerts:
        dispatch_alerts(alerts, sink)
