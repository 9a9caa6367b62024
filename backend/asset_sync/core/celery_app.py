
# Celery app: job worker + beat ticks

from celery import Celery
from kombu import Exchange, Queue
from asset_sync.core.config import settings
from asset_sync.core.logging import configure_logging

configure_logging()


'''
Celery application
   - Beat: 1 instance (auto-sync tick, job poll safety net, reaper, metrics cleanup)
   - Worker: consumes "sync_jobs" with low concurrency; each job fans out to its own thread pool
'''
celery_app = Celery(
    "asset_sync",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "asset_sync.orchestration.scheduler_tick",
        "asset_sync.orchestration.sync_jobs.sync_job_task",
    ],
)


celery_app.conf.update(
    timezone=settings.CELERY_TIMEZONE,
    enable_utc=True,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_track_started=True,
    broker_connection_retry_on_startup=True,
    worker_prefetch_multiplier=1,    # one long job per worker slot
    task_acks_late=True,             # a crashed worker puts the message back; the CAS claim makes redelivery harmless
    broker_heartbeat=30,
    broker_pool_limit=10,
)


'''
Queues
   - sync_jobs:   full syncs (long, DAM/Shopify I/O bound)
   - maintenance: ticks, reaper, metric cleanup (short)
'''
celery_app.conf.task_queues = (
    Queue("default", Exchange("default"), routing_key="default"),
    Queue("sync_jobs", Exchange("sync_jobs"), routing_key="sync_jobs"),
    Queue("maintenance", Exchange("maintenance"), routing_key="maintenance"),
)


celery_app.conf.task_routes = {
    "asset_sync.orchestration.sync_jobs.sync_job_task.process_pending_jobs": {"queue": "sync_jobs"},
    "asset_sync.orchestration.sync_jobs.sync_job_task.kick_full_sync": {"queue": "sync_jobs"},

    "asset_sync.orchestration.scheduler_tick.tick_auto_sync": {"queue": "maintenance"},
    "asset_sync.orchestration.sync_jobs.sync_job_task.reap_stale_jobs": {"queue": "maintenance"},
    "asset_sync.orchestration.sync_jobs.sync_job_task.cleanup_metrics": {"queue": "maintenance"},
}


celery_app.conf.beat_schedule = {

    # every 5 minutes: enqueue scheduled full syncs for shops whose interval elapsed
    "auto-sync-tick": {
        "task": "asset_sync.orchestration.scheduler_tick.tick_auto_sync",
        "schedule": 300,
    },

    # safety net: pick up pending jobs whose wake-up message was lost
    "process-pending-jobs": {
        "task": "asset_sync.orchestration.sync_jobs.sync_job_task.process_pending_jobs",
        "schedule": settings.JOB_POLL_INTERVAL_SEC,
    },

    "reap-stale-jobs": {
        "task": "asset_sync.orchestration.sync_jobs.sync_job_task.reap_stale_jobs",
        "schedule": 600,
    },

    # daily metric retention
    "cleanup-metrics": {
        "task": "asset_sync.orchestration.sync_jobs.sync_job_task.cleanup_metrics",
        "schedule": 24 * 3600,
    },
}
