import logging
from datetime import timedelta

from asset_sync.db.model.metric import SyncMetric
from asset_sync.observability.alerts import (
    Alert, AlertConditions, LoggingAlertSink, check_sync_job_alerts, dispatch_alerts, get_shop_alerts,
)
from asset_sync.orchestration.asset_sync.batch_sync import BatchSyncResult
from asset_sync.orchestration.sync_jobs import lifecycle
from asset_sync.utils.clock import now_utc

CONDITIONS = AlertConditions(error_rate_threshold=10.0, throughput_threshold=1.0, rate_limit_threshold=5)


def _job(db, shop, *, fail=False):
    lifecycle.enqueue(db, shop.id)
    job = lifecycle.claim_next(db)
    if fail:
        return lifecycle.fail(db, job.id, "boom")
    return lifecycle.complete(db, job.id, BatchSyncResult(processed=10, created=10))


def _metric(db, shop, job, metric_type, value):
    db.add(SyncMetric(shop_id=shop.id, sync_job_id=job.id, metric_type=metric_type,
                      metric_name=metric_type, value=value, recorded_at=now_utc() - timedelta(seconds=1)))
    db.commit()


def test_failed_job_is_critical(db, shop):
    job = _job(db, shop, fail=True)

    (alert,) = check_sync_job_alerts(db, shop.id, job.id, CONDITIONS)

    assert alert.severity == "critical"
    assert alert.message == "Sync job failed. Please check the error details."


def test_healthy_job_has_no_alerts(db, shop):
    job = _job(db, shop)
    _metric(db, shop, job, "error_rate", 2.0)
    _metric(db, shop, job, "throughput", 5.0)

    assert check_sync_job_alerts(db, shop.id, job.id, CONDITIONS) == []


def test_threshold_warnings(db, shop):
    job = _job(db, shop)
    _metric(db, shop, job, "error_rate", 25.0)
    _metric(db, shop, job, "throughput", 0.5)
    for _ in range(5):
        _metric(db, shop, job, "rate_limit_hit", 1)

    messages = [a.message for a in check_sync_job_alerts(db, shop.id, job.id, CONDITIONS)]

    assert messages == [
        "High error rate detected: 25.0% of assets failed to sync.",
        "Slow sync performance: 0.50 assets/second. Consider checking API rate limits.",
        "Rate limit exceeded 5 time(s). Sync may be slower than expected.",
    ]


def test_active_or_foreign_jobs_have_no_alerts(db, shop):
    job = lifecycle.enqueue(db, shop.id)

    assert check_sync_job_alerts(db, shop.id, job.id, CONDITIONS) == []
    assert check_sync_job_alerts(db, "other-shop", job.id, CONDITIONS) == []


def test_shop_alerts_are_deduplicated(db, shop):
    _job(db, shop, fail=True)
    _job(db, shop, fail=True)

    alerts = get_shop_alerts(db, shop.id, CONDITIONS)

    assert len(alerts) == 1
    assert alerts[0].severity == "critical"


def test_dispatch_counts_delivered_and_survives_sink_errors():
    class Flaky:
        def __init__(self):
            self.seen = []

        def send(self, alert):
            if alert.severity == "critical":
                raise RuntimeError("pager down")
            self.seen.append(alert)

    sink = Flaky()
    alerts = [Alert("warning", "a", "s1"), Alert("critical", "b", "s1"), Alert("info", "c", "s1")]

    assert dispatch_alerts(alerts, sink) == 2
    assert [a.message for a in sink.seen] == ["a", "c"]


def test_logging_sink_uses_severity_level(caplog):
    caplog.set_level(logging.INFO, logger="asset_sync.alerts")

    LoggingAlertSink().send(Alert("critical", "Sync job failed.", "s1", "j1"))

    record = caplog.records[-1]
    assert record.levelno == logging.CRITICAL
    assert "job_id=j1" in record.getMessage()
