"""
Metric sink for the sync engine.

A MetricsCollector carries its shop/job context explicitly and is handed to
whoever needs it (executor, batch, lifecycle). Every write opens its own short
session so a metrics failure can never roll back or poison the caller's
transaction; failures are logged and swallowed.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from asset_sync.core.config import settings
from asset_sync.db import session as db_session
from asset_sync.db.model.metric import API_CALL, SYNC_DURATION, THROUGHPUT, ERROR_RATE, RATE_LIMIT_HIT
from asset_sync.repository import metrics_repo
from asset_sync.utils.clock import now_utc

logger = logging.getLogger(__name__)


# metric names
SYNC_DURATION_SECONDS = "sync_duration_seconds"
ASSETS_PER_SECOND = "assets_per_second"
ERROR_RATE_PERCENT = "error_rate_percent"
RATE_LIMIT_HITS = "rate_limit_hits"


class MetricsCollector:

    def __init__(
        self,
        shop_id: str,
        sync_job_id: Optional[str] = None,
        *,
        session_factory: Optional[Callable[[], Session]] = None,
        enabled: Optional[bool] = None,
    ) -> None:
        self.shop_id = shop_id
        self.sync_job_id = sync_job_id
        self._session_factory = session_factory
        self.enabled = settings.METRICS_ENABLED if enabled is None else enabled

    def for_job(self, sync_job_id: Optional[str]) -> "MetricsCollector":
        """Same sink, different job context."""
        return MetricsCollector(
            self.shop_id,
            sync_job_id,
            session_factory=self._session_factory,
            enabled=self.enabled,
        )

    # ---------- writes (never raise) ----------
    def record(self, metric_type: str, metric_name: str, value: float,
               metadata: Optional[dict[str, Any]] = None) -> None:
        if not self.enabled:
            return
        try:
            factory = self._session_factory or db_session.SessionLocal
            db = factory()
            try:
                metrics_repo.insert_metric(
                    db,
                    shop_id=self.shop_id,
                    sync_job_id=self.sync_job_id,
                    metric_type=metric_type,
                    metric_name=metric_name,
                    value=value,
                    metadata=metadata,
                )
            finally:
                db.close()
        except Exception:
            logger.warning(
                "metrics.record_failed shop_id=%s job_id=%s type=%s name=%s",
                self.shop_id, self.sync_job_id, metric_type, metric_name, exc_info=True,
            )

    def record_api_call(self, name: str, metadata: Optional[dict[str, Any]] = None) -> None:
        self.record(API_CALL, name, 1, metadata)

    def record_sync_duration(self, seconds: float) -> None:
        self.record(SYNC_DURATION, SYNC_DURATION_SECONDS, round(float(seconds), 3))

    def record_throughput(self, assets_per_second: float) -> None:
        self.record(THROUGHPUT, ASSETS_PER_SECOND, round(float(assets_per_second), 3))

    def record_error_rate(self, percent: float) -> None:
        self.record(ERROR_RATE, ERROR_RATE_PERCENT, round(float(percent), 2))

    def record_rate_limit_hit(self, endpoint: Optional[str] = None) -> None:
        self.record(RATE_LIMIT_HIT, RATE_LIMIT_HITS, 1, {"endpoint": endpoint} if endpoint else None)


def cleanup_old_metrics(db: Session, retention_days: Optional[int] = None, *, shop_id: Optional[str] = None) -> int:
    """Delete metrics older than the retention window; returns rows removed."""
    days = retention_days if retention_days is not None else settings.METRICS_RETENTION_DAYS
    cutoff = now_utc() - timedelta(days=max(0, int(days)))
    removed = metrics_repo.delete_older_than(db, cutoff, shop_id=shop_id)
    logger.info("metrics.cleanup removed=%s older_than_days=%s shop_id=%s", removed, days, shop_id or "*")
    return removed
