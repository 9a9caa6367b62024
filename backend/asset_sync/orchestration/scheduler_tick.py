# feature: beat fires tick_auto_sync every few minutes; shops opted into auto sync
# get a scheduled full-sync job once AUTO_SYNC_INTERVAL_MINUTES have passed since their last job

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task

from asset_sync.core.config import settings
from asset_sync.db.session import SessionLocal
from asset_sync.orchestration.asset_sync.errors import ConflictError
from asset_sync.orchestration.sync_jobs import lifecycle
from asset_sync.orchestration.sync_jobs.sync_job_task import process_pending_jobs
from asset_sync.repository import shop_repo, sync_job_repo
from asset_sync.utils.clock import now_utc

logger = logging.getLogger(__name__)


@shared_task(name="asset_sync.orchestration.scheduler_tick.tick_auto_sync")
def tick_auto_sync() -> dict:
    interval = timedelta(minutes=settings.AUTO_SYNC_INTERVAL_MINUTES)
    now = now_utc()
    enqueued, skipped = [], 0

    db = SessionLocal()
    try:
        for shop in shop_repo.list_auto_sync(db):
            last = sync_job_repo.list_for_shop(db, shop.id, limit=1)
            if last and last[0].created_at and (now - last[0].created_at) < interval:
                skipped += 1
                continue
            try:
                job = lifecycle.enqueue(db, shop.id, trigger="scheduled")
            except ConflictError:
                # previous run still pending/running
                skipped += 1
                continue
            enqueued.append(job.id)
    finally:
        db.close()

    if enqueued:
        logger.info("sync.schedule.enqueued jobs=%s skipped=%s", enqueued, skipped)
        process_pending_jobs.delay()
    return {"enqueued": enqueued, "skipped": skipped}
