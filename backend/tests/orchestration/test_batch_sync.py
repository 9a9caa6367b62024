import pytest
import requests

from conftest import make_asset

from asset_sync.core.config import settings
from asset_sync.integrations.dam import DAMRateLimitError
from asset_sync.integrations.dam import http_client as http_mod
from asset_sync.orchestration.asset_sync.batch_sync import sync_all
from asset_sync.orchestration.asset_sync.context import build_dam_api


def _seed(harness, n, tags=None):
    for i in range(1, n + 1):
        harness.dam.assets[f"A{i}"] = make_asset(f"A{i}", tags=tags)


def test_failures_are_collected_and_batch_continues(harness):
    _seed(harness, 5)
    harness.dam.fail_download["A3"] = DAMRateLimitError("429")

    result = sync_all(harness.ctx)

    assert result.processed == 5
    assert result.created == 4
    assert result.failed == 1
    assert result.errors[0]["assetId"] == "A3"
    assert result.errors[0]["transient"] is True
    assert result.cancelled is False


def test_pages_until_short_page(harness):
    _seed(harness, 5)    # page_size=2 -> 2 + 2 + 1

    result = sync_all(harness.ctx)

    assert result.pages == 3
    assert [c[1] for c in harness.dam.list_calls] == [1, 2, 3]
    assert harness.metrics.names("api_call").count("dam_getMediaList") == 3


def test_exact_multiple_stops_on_total(harness):
    _seed(harness, 4)

    result = sync_all(harness.ctx)

    assert result.processed == 4
    assert result.pages == 2


def test_asset_matching_several_tags_is_synced_once(harness):
    harness.ctx.sync_tags = ["shopify-sync", "web"]
    harness.dam.assets["A1"] = make_asset("A1", tags=["shopify-sync", "web"])
    harness.dam.assets["A2"] = make_asset("A2", tags=["web"])

    result = sync_all(harness.ctx)

    assert result.processed == 2
    assert sorted(harness.shopify.created) == ["A1", "A2"]


def test_second_full_sync_skips_everything(harness):
    _seed(harness, 3)
    sync_all(harness.ctx)

    again = sync_all(harness.ctx)

    assert again.processed == 3
    assert again.skipped == 3
    assert again.created == again.updated == 0
    assert len(harness.shopify.files) == 3


def test_cancellation_before_first_page(harness):
    _seed(harness, 3)

    result = sync_all(harness.ctx, should_continue=lambda: False)

    assert result.cancelled is True
    assert result.processed == 0
    assert harness.dam.list_calls == []


def test_cancellation_mid_run_keeps_partial_counts(harness):
    _seed(harness, 6)
    polls = {"n": 0}

    def should_continue():
        polls["n"] += 1
        return polls["n"] <= 3      # page check + two submissions

    result = sync_all(harness.ctx, should_continue=should_continue)

    assert result.cancelled is True
    assert result.processed == 2
    assert len(harness.dam.list_calls) == 1


def test_parallel_workers_keep_catalog_order(harness):
    harness.ctx.page_size = 10
    _seed(harness, 7)
    for i in (2, 5):
        harness.dam.fail_download[f"A{i}"] = DAMRateLimitError("429")

    result = sync_all(harness.ctx, max_workers=4)

    assert result.processed == 7
    assert [e["assetId"] for e in result.errors] == ["A2", "A5"]


def test_list_rate_limit_backs_off_and_retries_same_page(harness):
    _seed(harness, 1)
    harness.dam.list_errors = [DAMRateLimitError("429"), DAMRateLimitError("429", retry_after=30)]
    sleeps = []

    result = sync_all(harness.ctx, sleep=sleeps.append)

    assert result.processed == 1
    assert len(sleeps) == 2
    assert sleeps[1] >= 30
    # 429s are counted by the DAM client hook, not again by the page loop
    assert harness.metrics.names("rate_limit_hit") == []
    assert [c[1] for c in harness.dam.list_calls] == [1, 1, 1]


def test_list_rate_limit_gives_up_after_max_hits(harness, monkeypatch):
    monkeypatch.setattr(settings, "SYNC_PAGE_RATE_LIMIT_RETRIES", 2)
    _seed(harness, 1)
    harness.dam.list_errors = [DAMRateLimitError("429")] * 3
    sleeps = []

    with pytest.raises(DAMRateLimitError):
        sync_all(harness.ctx, sleep=sleeps.append)
    assert len(sleeps) == 1


def test_result_dict_shape(harness):
    _seed(harness, 1)

    out = sync_all(harness.ctx).to_dict()

    assert out == {"processed": 1, "created": 1, "updated": 0, "skipped": 0, "errors": [], "cancelled": False}


class AlwaysThrottled:
    """requests.Session stand-in answering every call with 429."""

    def __init__(self):
        self.calls = 0

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        self.calls += 1
        resp = requests.Response()
        resp.status_code = 429
        resp._content = b""
        return resp

    def close(self):
        pass


def test_list_429_is_counted_once_per_response(harness, shop, monkeypatch):
    monkeypatch.setattr(settings, "SYNC_PAGE_RATE_LIMIT_RETRIES", 1)
    monkeypatch.setattr(settings, "DAM_HTTP_RETRIES", 2)
    monkeypatch.setattr(http_mod.time, "sleep", lambda s: None)
    session = AlwaysThrottled()
    monkeypatch.setattr(http_mod.requests, "Session", lambda: session)
    harness.ctx.dam = build_dam_api(shop, harness.metrics)

    with pytest.raises(DAMRateLimitError):
        sync_all(harness.ctx, sleep=lambda s: None)

    assert session.calls == 2
    assert harness.metrics.names("rate_limit_hit") == ["rate_limit_hits", "rate_limit_hits"]
