"""Read models over sync_metrics: per-shop summary and per-job breakdown."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from asset_sync.db.model.metric import SyncMetric, API_CALL, ERROR_RATE, RATE_LIMIT_HIT
from asset_sync.db.model.sync_job import SyncJob, JOB_COMPLETED
from asset_sync.observability.collector import (
    SYNC_DURATION_SECONDS, ASSETS_PER_SECOND, ERROR_RATE_PERCENT,
)


def get_metrics_summary(db: Session, shop_id: str, last_n_jobs: int = 10) -> dict:
    """
    Averages over the shop's last N completed jobs.
    errorRateTrend = newest error rate minus the one before it (positive = getting worse).
    """
    job_ids = list(db.scalars(
        select(SyncJob.id)
        .where(SyncJob.shop_id == shop_id, SyncJob.status == JOB_COMPLETED)
        .order_by(SyncJob.completed_at.desc())
        .limit(max(1, last_n_jobs))
    ))
    summary = {
        "jobsAnalyzed": len(job_ids),
        "averageSyncDuration": 0.0,
        "averageThroughput": 0.0,
        "totalApiCalls": 0,
        "errorRateTrend": 0.0,
        "rateLimitHits": 0,
    }
    if not job_ids:
        return summary

    rows = list(db.execute(
        select(SyncMetric.metric_type, SyncMetric.metric_name, SyncMetric.value, SyncMetric.recorded_at)
        .where(SyncMetric.shop_id == shop_id, SyncMetric.sync_job_id.in_(job_ids))
        .order_by(SyncMetric.recorded_at.desc())
    ))

    durations = [r.value for r in rows if r.metric_name == SYNC_DURATION_SECONDS]
    throughputs = [r.value for r in rows if r.metric_name == ASSETS_PER_SECOND]
    error_rates = [r.value for r in rows if r.metric_type == ERROR_RATE and r.metric_name == ERROR_RATE_PERCENT]

    if durations:
        summary["averageSyncDuration"] = round(sum(durations) / len(durations), 1)
    if throughputs:
        summary["averageThroughput"] = round(sum(throughputs) / len(throughputs), 1)
    summary["totalApiCalls"] = int(round(sum(r.value for r in rows if r.metric_type == API_CALL)))
    summary["rateLimitHits"] = int(round(sum(r.value for r in rows if r.metric_type == RATE_LIMIT_HIT)))
    if len(error_rates) >= 2:
        summary["errorRateTrend"] = round(error_rates[0] - error_rates[1], 1)
    elif error_rates:
        summary["errorRateTrend"] = round(error_rates[0], 1)
    return summary


def get_job_metrics(db: Session, shop_id: str, sync_job_id: str) -> Optional[dict]:
    """Duration / throughput / error rate / API call breakdown of one job; None when nothing was recorded."""
    rows = list(db.scalars(
        select(SyncMetric).where(SyncMetric.shop_id == shop_id, SyncMetric.sync_job_id == sync_job_id)
    ))
    if not rows:
        return None

    def _first(name: str) -> float:
        return next((m.value for m in rows if m.metric_name == name), 0.0)

    api_calls: dict[str, int] = {}
    for m in rows:
        if m.metric_type == API_CALL:
            api_calls[m.metric_name] = api_calls.get(m.metric_name, 0) + int(m.value)

    return {
        "duration": _first(SYNC_DURATION_SECONDS),
        "throughput": _first(ASSETS_PER_SECOND),
        "errorRate": _first(ERROR_RATE_PERCENT),
        "apiCalls": sum(api_calls.values()),
        "apiCallsByName": api_calls,
        "rateLimitHits": int(sum(m.value for m in rows if m.metric_type == RATE_LIMIT_HIT)),
    }
