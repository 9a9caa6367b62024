from datetime import timedelta

import pytest

from asset_sync.orchestration import scheduler_tick
from asset_sync.orchestration.asset_sync.batch_sync import BatchSyncResult
from asset_sync.orchestration.sync_jobs import lifecycle, sync_job_task
from asset_sync.repository import shop_repo, sync_job_repo
from asset_sync.utils.clock import now_utc


def _use_harness(monkeypatch, harness):
    run_job = lifecycle.run_job
    factory = harness.factory()
    monkeypatch.setattr(sync_job_task.lifecycle, "run_job", lambda db, job_id: run_job(db, job_id, context_factory=factory))


@pytest.fixture()
def wakeups(monkeypatch):
    calls = []
    monkeypatch.setattr(scheduler_tick.process_pending_jobs, "delay", lambda *a, **kw: calls.append(a))
    return calls


@pytest.fixture()
def auto_shop(db):
    return shop_repo.upsert(
        db, "auto.myshopify.com", dam_base_url="https://auto.dam.example", auto_sync_enabled=True,
    )


def test_enqueues_scheduled_job_for_opted_in_shops(db, shop, auto_shop, wakeups):
    out = scheduler_tick.tick_auto_sync.run()

    assert len(out["enqueued"]) == 1
    job = sync_job_repo.get(db, out["enqueued"][0])
    assert job.shop_id == auto_shop.id
    assert job.trigger == "scheduled"
    assert wakeups == [()]


def test_recent_job_defers_next_run(db, auto_shop, wakeups):
    lifecycle.enqueue(db, auto_shop.id)
    job = lifecycle.claim_next(db)
    lifecycle.complete(db, job.id, BatchSyncResult())

    out = scheduler_tick.tick_auto_sync.run()

    assert out == {"enqueued": [], "skipped": 1}
    assert wakeups == []


def test_old_job_allows_next_run(db, auto_shop, wakeups):
    lifecycle.enqueue(db, auto_shop.id)
    job = lifecycle.claim_next(db)
    finished = lifecycle.complete(db, job.id, BatchSyncResult())
    finished.created_at = now_utc() - timedelta(days=1)
    db.commit()

    out = scheduler_tick.tick_auto_sync.run()

    assert len(out["enqueued"]) == 1


def test_worker_task_drains_pending_jobs(db, shop, harness, monkeypatch):
    _use_harness(monkeypatch, harness)
    lifecycle.enqueue(db, shop.id)

    out = sync_job_task.process_pending_jobs.run()

    assert [r["status"] for r in out["ran"]] == ["completed"]
    assert sync_job_task.process_pending_jobs.run() == {"ran": []}


def test_start_full_sync_inline(db, shop, harness, monkeypatch):
    monkeypatch.setattr(sync_job_task, "_inline_tasks_enabled", lambda: True)
    _use_harness(monkeypatch, harness)

    job_id = sync_job_task.start_full_sync(shop.id)

    assert sync_job_repo.get(db, job_id, fresh=True).status == "completed"


def test_maintenance_tasks(db, shop):
    lifecycle.enqueue(db, shop.id)
    job = lifecycle.claim_next(db)
    job.started_at = now_utc() - timedelta(days=2)
    db.commit()

    assert sync_job_task.reap_stale_jobs.run() == {"reaped": [job.id]}
    assert sync_job_task.cleanup_metrics.run(retention_days=30) == {"removed": 0}
