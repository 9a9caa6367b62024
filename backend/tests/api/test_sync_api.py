import json

import pytest
from fastapi.testclient import TestClient

from asset_sync.integrations.dam import compute_signature
from asset_sync.main import app
from asset_sync.orchestration.asset_sync.batch_sync import BatchSyncResult
from asset_sync.orchestration.sync_jobs import lifecycle, sync_job_task

PREFIX = "/api/v1"


@pytest.fixture()
def client(engine):
    return TestClient(app)


@pytest.fixture()
def wakeups(monkeypatch):
    calls = []
    monkeypatch.setattr(sync_job_task, "_inline_tasks_enabled", lambda: False)
    monkeypatch.setattr(sync_job_task.process_pending_jobs, "delay", lambda *a, **kw: calls.append(a))
    return calls


def test_health(client):
    r = client.get(f"{PREFIX}/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_shop_upsert_never_echoes_secrets(client):
    r = client.put(f"{PREFIX}/shops/New-Store.myshopify.com", json={
        "dam_base_url": "https://new.dam.example",
        "dam_permanent_token": "secret-token",
        "webhook_secret": "hush",
        "sync_tags": "web, shop",
        "file_folder_template": "dam/{tag}",
        "file_name_suffix": "-web",
    })
    assert r.status_code == 200
    body = r.json()
    assert body["shop_domain"] == "new-store.myshopify.com"
    assert body["file_folder_template"] == "dam/{tag}"
    assert body["file_name_suffix"] == "-web"
    assert body["has_webhook_secret"] is True
    assert "dam_permanent_token" not in body and "webhook_secret" not in body

    assert client.get(f"{PREFIX}/shops/new-store.myshopify.com").json()["id"] == body["id"]
    assert client.get(f"{PREFIX}/shops/ghost.myshopify.com").status_code == 404


def test_trigger_full_sync_then_conflict(client, shop, wakeups):
    r = client.post(f"{PREFIX}/shops/{shop.id}/sync")
    assert r.status_code == 202
    job_id = r.json()["jobId"]
    assert r.json()["status"] == "pending"
    assert len(wakeups) == 1

    again = client.post(f"{PREFIX}/shops/{shop.id}/sync")
    assert again.status_code == 409

    jobs = client.get(f"{PREFIX}/shops/{shop.id}/sync/jobs").json()
    assert [j["id"] for j in jobs] == [job_id]


def test_trigger_unknown_shop(client, wakeups):
    assert client.post(f"{PREFIX}/shops/nope/sync").status_code == 404


def test_get_and_cancel_job(client, db, shop):
    job = lifecycle.enqueue(db, shop.id)

    r = client.get(f"{PREFIX}/shops/{shop.id}/sync/jobs/{job.id}")
    assert r.status_code == 200 and r.json()["status"] == "pending"

    r = client.post(f"{PREFIX}/shops/{shop.id}/sync/jobs/{job.id}/cancel")
    assert r.status_code == 200 and r.json()["status"] == "cancelled"

    r = client.post(f"{PREFIX}/shops/{shop.id}/sync/jobs/{job.id}/cancel")
    assert r.status_code == 400

    assert client.get(f"{PREFIX}/shops/other/sync/jobs/{job.id}").status_code == 404


def test_retry_requires_exactly_one_source(client, shop):
    r = client.post(f"{PREFIX}/shops/{shop.id}/sync/retry", json={})
    assert r.status_code == 400

    r = client.post(f"{PREFIX}/shops/{shop.id}/sync/retry", json={"jobId": "missing"})
    assert r.status_code == 404


def test_metrics_and_alert_views(client, db, shop):
    lifecycle.enqueue(db, shop.id)
    job = lifecycle.claim_next(db)
    lifecycle.fail(db, job.id, "boom", BatchSyncResult())

    summary = client.get(f"{PREFIX}/shops/{shop.id}/metrics/summary").json()
    assert summary["jobsAnalyzed"] == 0

    assert client.get(f"{PREFIX}/shops/{shop.id}/metrics/jobs/{job.id}").status_code == 404

    alerts = client.get(f"{PREFIX}/shops/{shop.id}/alerts").json()["alerts"]
    assert [a["severity"] for a in alerts] == ["critical"]


def test_webhook_status_lists_recent_events(client, shop):
    client.post(f"{PREFIX}/webhooks/dam/{shop.shop_domain}", content=json.dumps({"assetId": "A1"}))

    body = client.get(f"{PREFIX}/shops/{shop.id}/webhooks").json()

    assert body["active"] is False
    assert "asset.tagged" in body["eventTypes"]
    assert body["recentEvents"][0]["error"] == "subscription inactive"


# ---------- DAM callback route ----------
def test_webhook_route_inactive_subscription(client, shop):
    r = client.post(
        f"{PREFIX}/webhooks/dam/{shop.shop_domain}",
        content=json.dumps({"eventType": "asset.tagged", "assetId": "A1"}),
        headers={"Content-Type": "application/json"},
    )
    assert r.status_code == 200
    assert r.json() == {"success": False, "message": "Webhook subscription is not active"}


def test_webhook_route_rejects_bad_signature(client, shop, active_subscription):
    raw = json.dumps({"eventType": "asset.tagged", "assetId": "A1"}).encode()

    r = client.post(f"{PREFIX}/webhooks/dam/{shop.shop_domain}", content=raw,
                    headers={"X-Bynder-Signature": compute_signature("not-the-secret", raw)})

    assert r.status_code == 401


def test_webhook_route_malformed_json(client, shop):
    r = client.post(f"{PREFIX}/webhooks/dam/{shop.shop_domain}", content=b"{oops")
    assert r.status_code == 400


def test_webhook_route_skips_origin_check(client, shop):
    r = client.post(f"{PREFIX}/webhooks/dam/{shop.shop_domain}", content=b"{}",
                    headers={"Origin": "https://evil.example"})
    assert r.status_code != 403


def test_untrusted_origin_is_blocked_on_admin_routes(client, shop):
    r = client.post(f"{PREFIX}/shops/{shop.id}/sync", headers={"Origin": "https://evil.example"})
    assert r.status_code == 403
