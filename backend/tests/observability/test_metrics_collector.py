from datetime import timedelta

from asset_sync.db.model.metric import SyncMetric
from asset_sync.observability.collector import MetricsCollector, cleanup_old_metrics
from asset_sync.observability.queries import get_job_metrics, get_metrics_summary
from asset_sync.orchestration.asset_sync.batch_sync import BatchSyncResult
from asset_sync.orchestration.sync_jobs import lifecycle
from asset_sync.repository import metrics_repo
from asset_sync.utils.clock import now_utc


def _completed_job(db, shop):
    lifecycle.enqueue(db, shop.id)
    job = lifecycle.claim_next(db)
    return lifecycle.complete(db, job.id, BatchSyncResult(processed=1, created=1))


def _metric(db, shop, job, metric_type, name, value, minutes_ago=0):
    db.add(SyncMetric(
        shop_id=shop.id, sync_job_id=job.id, metric_type=metric_type, metric_name=name,
        value=value, recorded_at=now_utc() - timedelta(minutes=minutes_ago),
    ))
    db.commit()


def test_collector_writes_rows_with_job_context(db, shop):
    job = _completed_job(db, shop)
    collector = MetricsCollector(shop.id).for_job(job.id)

    collector.record_api_call("dam_getMediaInfo")
    collector.record_api_call("dam_getMediaInfo")
    collector.record_rate_limit_hit("v4/media/")
    collector.record_sync_duration(12.3456)

    assert metrics_repo.api_call_counts(db, job.id) == {"dam_getMediaInfo": 2}
    (hit,) = metrics_repo.list_for_job(db, job.id, metric_type="rate_limit_hit")
    assert hit.meta == {"endpoint": "v4/media/"}
    assert metrics_repo.latest_value(db, job.id, "sync_duration") == 12.346


def test_collector_swallows_storage_failures(shop, caplog):
    def broken_session():
        raise RuntimeError("database is down")

    collector = MetricsCollector(shop.id, session_factory=broken_session)
    collector.record_throughput(3.0)      # must not raise

    assert "metrics.record_failed" in caplog.text


def test_disabled_collector_writes_nothing(db, shop):
    job = _completed_job(db, shop)

    MetricsCollector(shop.id, job.id, enabled=False).record_api_call("x")

    assert metrics_repo.count_for_job(db, job.id, "api_call") == 0


def test_cleanup_removes_only_old_rows(db, shop):
    job = _completed_job(db, shop)
    _metric(db, shop, job, "api_call", "old", 1, minutes_ago=60 * 24 * 40)
    _metric(db, shop, job, "api_call", "new", 1)

    removed = cleanup_old_metrics(db, retention_days=30)

    assert removed == 1
    assert [m.metric_name for m in metrics_repo.list_for_job(db, job.id)] == ["new"]


def test_summary_over_completed_jobs(db, shop):
    first = _completed_job(db, shop)
    second = _completed_job(db, shop)
    _metric(db, shop, first, "sync_duration", "sync_duration_seconds", 10.0, minutes_ago=10)
    _metric(db, shop, first, "error_rate", "error_rate_percent", 5.0, minutes_ago=10)
    _metric(db, shop, first, "throughput", "assets_per_second", 2.0, minutes_ago=10)
    _metric(db, shop, second, "sync_duration", "sync_duration_seconds", 20.0, minutes_ago=1)
    _metric(db, shop, second, "error_rate", "error_rate_percent", 12.5, minutes_ago=1)
    _metric(db, shop, second, "throughput", "assets_per_second", 4.0, minutes_ago=1)
    for _ in range(3):
        _metric(db, shop, second, "api_call", "shopify_fileCreate", 1)
    _metric(db, shop, second, "rate_limit_hit", "rate_limit_hits", 1)

    summary = get_metrics_summary(db, shop.id)

    assert summary == {
        "jobsAnalyzed": 2,
        "averageSyncDuration": 15.0,
        "averageThroughput": 3.0,
        "totalApiCalls": 3,
        "errorRateTrend": 7.5,
        "rateLimitHits": 1,
    }


def test_summary_without_jobs(db, shop):
    assert get_metrics_summary(db, shop.id)["jobsAnalyzed"] == 0


def test_job_metrics_breakdown(db, shop):
    job = _completed_job(db, shop)
    assert get_job_metrics(db, shop.id, job.id) is None

    _metric(db, shop, job, "sync_duration", "sync_duration_seconds", 8.0)
    _metric(db, shop, job, "api_call", "dam_getMediaList", 1)
    _metric(db, shop, job, "api_call", "dam_download", 1)
    _metric(db, shop, job, "api_call", "dam_download", 1)

    out = get_job_metrics(db, shop.id, job.id)

    assert out["duration"] == 8.0
    assert out["apiCalls"] == 3
    assert out["apiCallsByName"] == {"dam_getMediaList": 1, "dam_download": 2}
    assert out["throughput"] == 0.0
