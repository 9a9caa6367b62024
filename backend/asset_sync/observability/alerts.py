"""
Threshold alerts derived from a finished sync job and its metrics.

  - failed job                           -> critical, nothing else checked
  - error rate above threshold           -> warning
  - throughput below threshold           -> warning
  - rate-limit hits at/above threshold   -> warning

Delivery goes through an AlertSink; dispatch_alerts never raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, asdict
from typing import Iterable, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from asset_sync.core.config import settings
from asset_sync.db.model.metric import SyncMetric, THROUGHPUT, ERROR_RATE, RATE_LIMIT_HIT
from asset_sync.db.model.sync_job import JOB_COMPLETED, JOB_FAILED
from asset_sync.repository import sync_job_repo

logger = logging.getLogger(__name__)


SEVERITY_INFO = "info"
SEVERITY_WARNING = "warning"
SEVERITY_ERROR = "error"
SEVERITY_CRITICAL = "critical"

RECENT_JOBS_FOR_SHOP_ALERTS = 5


@dataclass(frozen=True)
class Alert:
    severity: str
    message: str
    shop_id: str
    job_id: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class AlertConditions:
    error_rate_threshold: float = field(default_factory=lambda: settings.ALERT_ERROR_RATE_PERCENT)
    throughput_threshold: float = field(default_factory=lambda: settings.ALERT_MIN_ASSETS_PER_SECOND)
    rate_limit_threshold: int = field(default_factory=lambda: settings.ALERT_RATE_LIMIT_HITS)


class AlertSink(Protocol):
    def send(self, alert: Alert) -> None: ...


class LoggingAlertSink:
    """Default sink: alerts land in the service log."""

    _LEVELS = {
        SEVERITY_INFO: logging.INFO,
        SEVERITY_WARNING: logging.WARNING,
        SEVERITY_ERROR: logging.ERROR,
        SEVERITY_CRITICAL: logging.CRITICAL,
    }

    def __init__(self, target: Optional[logging.Logger] = None) -> None:
        self.logger = target or logging.getLogger("asset_sync.alerts")

    def send(self, alert: Alert) -> None:
        self.logger.log(
            self._LEVELS.get(alert.severity, logging.WARNING),
            "alert severity=%s shop_id=%s job_id=%s message=%s",
            alert.severity, alert.shop_id, alert.job_id, alert.message,
        )


# ---------- evaluation ----------
def check_sync_job_alerts(
    db: Session,
    shop_id: str,
    job_id: str,
    conditions: Optional[AlertConditions] = None,
) -> list[Alert]:
    cond = conditions or AlertConditions()
    job = sync_job_repo.get(db, job_id)
    if job is None or job.shop_id != shop_id:
        return []

    if job.status == JOB_FAILED:
        return [Alert(SEVERITY_CRITICAL, "Sync job failed. Please check the error details.", shop_id, job_id)]
    if job.status != JOB_COMPLETED:
        return []

    rows = list(db.execute(
        select(SyncMetric.metric_type, SyncMetric.value, SyncMetric.recorded_at)
        .where(SyncMetric.sync_job_id == job_id)
        .order_by(SyncMetric.recorded_at.desc())
    ))
    error_rate = next((r.value for r in rows if r.metric_type == ERROR_RATE), None)
    throughput = next((r.value for r in rows if r.metric_type == THROUGHPUT), None)
    rate_limit_hits = int(sum(r.value for r in rows if r.metric_type == RATE_LIMIT_HIT))

    alerts: list[Alert] = []
    if error_rate is not None and error_rate > cond.error_rate_threshold:
        alerts.append(Alert(
            SEVERITY_WARNING,
            f"High error rate detected: {error_rate:.1f}% of assets failed to sync.",
            shop_id, job_id,
        ))
    if throughput is not None and throughput < cond.throughput_threshold:
        alerts.append(Alert(
            SEVERITY_WARNING,
            f"Slow sync performance: {throughput:.2f} assets/second. Consider checking API rate limits.",
            shop_id, job_id,
        ))
    if rate_limit_hits >= cond.rate_limit_threshold:
        alerts.append(Alert(
            SEVERITY_WARNING,
            f"Rate limit exceeded {rate_limit_hits} time(s). Sync may be slower than expected.",
            shop_id, job_id,
        ))
    return alerts


def get_shop_alerts(db: Session, shop_id: str, conditions: Optional[AlertConditions] = None) -> list[Alert]:
    """Alerts over the last five completed/failed jobs, one per distinct message."""
    jobs = sync_job_repo.list_for_shop(
        db, shop_id, limit=RECENT_JOBS_FOR_SHOP_ALERTS, statuses=(JOB_COMPLETED, JOB_FAILED),
    )
    seen: set[str] = set()
    out: list[Alert] = []
    for job in jobs:
        for alert in check_sync_job_alerts(db, shop_id, job.id, conditions):
            if alert.message in seen:
                continue
            seen.add(alert.message)
            out.append(alert)
    return out


def dispatch_alerts(alerts: Iterable[Alert], sink: Optional[AlertSink] = None) -> int:
    """Send each alert; sink failures are logged. Returns how many were delivered."""
    target = sink or LoggingAlertSink()
    sent = 0
    for alert in alerts:
        try:
            target.send(alert)
            sent += 1
        except Exception:
            logger.warning("alerts.dispatch_failed shop_id=%s job_id=%s", alert.shop_id, alert.job_id, exc_info=True)
    return sent
