import pytest

from conftest import make_asset

from asset_sync.orchestration.asset_sync.batch_sync import BatchSyncResult
from asset_sync.orchestration.asset_sync.error_categorization import (
    PERMANENT, TRANSIENT, UNKNOWN, categorize_entries, categorize_entry, categorize_message,
)
from asset_sync.orchestration.asset_sync.errors import InvalidArgument, NotFoundError
from asset_sync.orchestration.asset_sync.retry import retry_failed_assets
from asset_sync.orchestration.sync_jobs import lifecycle


def _finished_job(db, shop, errors):
    lifecycle.enqueue(db, shop.id)
    job = lifecycle.claim_next(db)
    return lifecycle.complete(db, job.id, BatchSyncResult(processed=len(errors), errors=errors))


@pytest.fixture()
def ctx(harness, shop):
    harness.ctx.shop_id = shop.id
    return harness.ctx


# ---------- categorization ----------
@pytest.mark.parametrize("message,category", [
    ("Request timed out after 30s", TRANSIENT),
    ("429 Too Many Requests", TRANSIENT),
    ("502 Bad Gateway", TRANSIENT),
    ("ECONNRESET", TRANSIENT),
    ("404 not found: v4/media/X/", PERMANENT),
    ("fileCreate userErrors: [...]", PERMANENT),
    ("Invalid file format", PERMANENT),
    ("something odd happened", UNKNOWN),
    ("", UNKNOWN),
])
def test_categorize_message(message, category):
    assert categorize_message(message) == category


def test_transient_patterns_win_over_permanent():
    assert categorize_message("invalid response: connection reset") == TRANSIENT


def test_stored_flag_wins_over_message():
    entry = {"assetId": "A1", "message": "404 not found", "transient": True}
    assert categorize_entry(entry).category == TRANSIENT
    assert categorize_entry({"assetId": "A1", "message": "timeout", "transient": False}).category == PERMANENT


def test_categorize_entries_groups():
    grouped = categorize_entries([
        {"assetId": "A", "message": "timeout"},
        {"assetId": "B", "message": "forbidden"},
        {"assetId": "C", "message": "??"},
    ])
    assert [c.asset_id for c in grouped[TRANSIENT]] == ["A"]
    assert [c.asset_id for c in grouped[PERMANENT]] == ["B"]
    assert [c.asset_id for c in grouped[UNKNOWN]] == ["C"]
    assert grouped[TRANSIENT][0].to_dict()["retryable"] is True


# ---------- retry engine ----------
def test_requires_exactly_one_source(db, ctx):
    with pytest.raises(InvalidArgument):
        retry_failed_assets(db, ctx)
    with pytest.raises(InvalidArgument):
        retry_failed_assets(db, ctx, job_id="x", asset_ids=["A1"])
    with pytest.raises(InvalidArgument):
        retry_failed_assets(db, ctx, asset_ids=[])


def test_unknown_or_foreign_job(db, ctx):
    with pytest.raises(NotFoundError):
        retry_failed_assets(db, ctx, job_id="missing")


def test_retry_from_job_errors(db, shop, ctx, harness):
    job = _finished_job(db, shop, [
        {"assetId": "A1", "message": "DAM fetch failed: timeout", "kind": "source_fetch", "transient": True},
        {"assetId": "A2", "message": "404 not found", "kind": "source_fetch", "transient": False},
    ])
    harness.dam.assets["A1"] = make_asset("A1")

    result = retry_failed_assets(db, ctx, job_id=job.id)

    assert result.processed == 2
    assert result.successful == 1 and result.created == 1
    assert result.failed == 1
    assert result.errors[0]["assetId"] == "A2"
    assert result.errors[0]["category"] == PERMANENT


def test_only_transient_skips_permanent_entries(db, shop, ctx, harness):
    job = _finished_job(db, shop, [
        {"assetId": "A1", "message": "rate limit", "transient": True},
        {"assetId": "A2", "message": "forbidden", "transient": False},
    ])
    harness.dam.assets["A1"] = make_asset("A1")
    harness.dam.assets["A2"] = make_asset("A2")

    result = retry_failed_assets(db, ctx, job_id=job.id, only_transient=True)

    assert result.processed == 1
    assert result.skipped == 1
    assert harness.dam.get_calls == ["A1"]
    skipped = result.errors[0]
    assert skipped["assetId"] == "A2" and skipped["kind"] == "skipped" and skipped["category"] == PERMANENT


def test_retry_by_asset_ids_uses_latest_recorded_error(db, shop, ctx, harness):
    _finished_job(db, shop, [{"assetId": "A1", "message": "forbidden", "transient": False}])
    _finished_job(db, shop, [{"assetId": "A1", "message": "timed out", "transient": True}])
    harness.dam.assets["A1"] = make_asset("A1")
    harness.dam.assets["A9"] = make_asset("A9")

    result = retry_failed_assets(db, ctx, asset_ids=["A1", "A9", "A1"], only_transient=True)

    # A1's newest error is transient -> retried; A9 has no history -> unknown -> skipped
    assert result.processed == 1
    assert result.created == 1
    assert result.skipped == 1
    assert result.errors[0]["assetId"] == "A9"
    assert result.errors[0]["category"] == UNKNOWN


def test_retry_by_asset_ids_without_filter_retries_all(db, ctx, harness):
    harness.dam.assets["A9"] = make_asset("A9")

    result = retry_failed_assets(db, ctx, asset_ids=["A9"])

    assert result.to_dict()["successful"] == 1
