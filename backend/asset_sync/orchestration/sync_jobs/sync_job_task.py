from __future__ import annotations

import logging
from typing import Optional

from celery import shared_task

from asset_sync.core.config import settings
from asset_sync.core.logging import configure_logging, job_log_context
from asset_sync.db.session import SessionLocal, session_scope
from asset_sync.observability.collector import cleanup_old_metrics
from asset_sync.orchestration.sync_jobs import lifecycle

configure_logging()
logger = logging.getLogger(__name__)


# jobs drained per process_pending_jobs invocation; the beat tick picks up the rest
MAX_JOBS_PER_RUN = 5


"""
  SYNC_TASKS_INLINE=True: follow-up work runs in the current process (local debugging).
"""
def _inline_tasks_enabled() -> bool:
    return bool(getattr(settings, "SYNC_TASKS_INLINE", False))


"""
  Enqueue a full sync for one shop and wake the worker.
  ConflictError propagates to the caller (API returns 409).
"""
def start_full_sync(shop_id: str, trigger: str = "manual") -> str:
    db = SessionLocal()
    try:
        job = lifecycle.enqueue(db, shop_id, trigger)
        job_id = job.id
    finally:
        db.close()

    if _inline_tasks_enabled():
        process_pending_jobs.run()
    else:
        process_pending_jobs.delay()
    return job_id


"""
  Worker entry: claim pending jobs one by one (atomic CAS) and run them.
  Triggered after enqueue and by beat every JOB_POLL_INTERVAL_SEC as a safety net.
"""
@shared_task(name="asset_sync.orchestration.sync_jobs.sync_job_task.process_pending_jobs")
def process_pending_jobs(max_jobs: Optional[int] = None) -> dict:
    limit = max_jobs or MAX_JOBS_PER_RUN
    ran = []
    db = SessionLocal()
    try:
        while len(ran) < limit:
            job = lifecycle.claim_next(db)
            if job is None:
                break
            with job_log_context(job.id):
                finished = lifecycle.run_job(db, job.id)
            ran.append({"jobId": finished.id, "status": finished.status})
    finally:
        db.close()

    if ran:
        logger.info("sync.worker.drained jobs=%s", ran)
    return {"ran": ran}


@shared_task(name="asset_sync.orchestration.sync_jobs.sync_job_task.kick_full_sync")
def kick_full_sync(shop_id: str, trigger: str = "manual") -> dict:
    return {"job_id": start_full_sync(shop_id, trigger)}


@shared_task(name="asset_sync.orchestration.sync_jobs.sync_job_task.reap_stale_jobs")
def reap_stale_jobs() -> dict:
    with session_scope() as db:
        reaped = lifecycle.reap_stale_jobs(db)
    return {"reaped": reaped}


@shared_task(name="asset_sync.orchestration.sync_jobs.sync_job_task.cleanup_metrics")
def cleanup_metrics(retention_days: Optional[int] = None) -> dict:
    with session_scope() as db:
        removed = cleanup_old_metrics(db, retention_days)
    return {"removed": removed}
