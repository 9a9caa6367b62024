"""
Full / batch reconciliation of one shop.

Pages through the tag-filtered DAM catalog (one pass per sync tag), and runs
each asset through sync_asset on a bounded thread pool. Per-asset failures are
collected, never raised. A DAM 429 on the page listing pauses the loop with
exponential backoff + jitter and retries the same page; only
SYNC_PAGE_RATE_LIMIT_RETRIES consecutive hits abort the run. Each 429 response is
counted once, by the DAM client hook (see context.build_dam_api).

Cancellation is cooperative: should_continue() is polled before every page and
before every submission. Items already handed to the pool finish.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Optional

from asset_sync.core.config import settings
from asset_sync.integrations.dam import DAMRateLimitError
from asset_sync.orchestration.asset_sync.context import SyncContext
from asset_sync.orchestration.asset_sync.errors import DestinationWriteError
from asset_sync.orchestration.asset_sync.single_asset import AssetSyncResult, sync_asset
from asset_sync.utils.backoff import jittered_delay

logger = logging.getLogger(__name__)


ShouldContinue = Callable[[], bool]


@dataclass
class BatchSyncResult:
    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[dict] = field(default_factory=list)
    cancelled: bool = False
    pages: int = 0
    duration_seconds: float = 0.0

    @property
    def failed(self) -> int:
        return len(self.errors)

    def add(self, result: AssetSyncResult) -> None:
        self.processed += 1
        if result.error is not None:
            self.errors.append(result.error.to_entry(result.asset_id))
        elif result.created:
            self.created += 1
        elif result.updated:
            self.updated += 1
        elif result.skipped:
            self.skipped += 1

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": list(self.errors),
            "cancelled": self.cancelled,
        }


def sync_all(
    ctx: SyncContext,
    should_continue: Optional[ShouldContinue] = None,
    max_workers: Optional[int] = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> BatchSyncResult:
    keep_going = should_continue or (lambda: True)
    workers = max(1, max_workers or ctx.max_workers)
    page_size = max(1, ctx.page_size)
    tags = list(ctx.sync_tags) or [None]

    result = BatchSyncResult()
    seen: set[str] = set()
    started = time.monotonic()

    logger.info("sync.batch.start shop_id=%s job_id=%s tags=%s page_size=%s workers=%s",
                ctx.shop_id, ctx.job_id, ctx.sync_tags, page_size, workers)

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="asset-sync") as pool:
        for tag in tags:
            page = 1
            while True:
                if not keep_going():
                    result.cancelled = True
                    break

                ctx.metrics.record_api_call("dam_getMediaList", {"tag": tag, "page": page})
                media_page = _list_page_with_backoff(ctx, tag, page, page_size, sleep)
                result.pages += 1

                fresh_ids = []
                for asset in media_page.items:
                    if asset.id not in seen:
                        seen.add(asset.id)
                        fresh_ids.append(asset.id)

                if not _run_page(ctx, pool, workers, fresh_ids, result, keep_going):
                    result.cancelled = True
                    break

                logger.info(
                    "sync.batch.page shop_id=%s tag=%s page=%s items=%s processed=%s errors=%s",
                    ctx.shop_id, tag, page, len(media_page.items), result.processed, result.failed,
                )
                if len(media_page.items) < page_size:
                    break
                if media_page.total is not None and page * page_size >= media_page.total:
                    break
                page += 1

            if result.cancelled:
                break

    result.duration_seconds = time.monotonic() - started
    logger.info(
        "sync.batch.done shop_id=%s job_id=%s processed=%s created=%s updated=%s skipped=%s errors=%s cancelled=%s dur=%.1fs",
        ctx.shop_id, ctx.job_id, result.processed, result.created, result.updated,
        result.skipped, result.failed, result.cancelled, result.duration_seconds,
    )
    return result


def _list_page_with_backoff(ctx: SyncContext, tag: Optional[str], page: int, page_size: int,
                            sleep: Callable[[float], None]):
    max_hits = max(1, settings.SYNC_PAGE_RATE_LIMIT_RETRIES)
    hits = 0
    while True:
        try:
            return ctx.dam.list_assets([tag] if tag else [], page=page, limit=page_size)
        except DAMRateLimitError as e:
            hits += 1
            if hits >= max_hits:
                logger.error("sync.batch.rate_limited shop_id=%s tag=%s page=%s hits=%s giving up",
                             ctx.shop_id, tag, page, hits)
                raise
            delay = jittered_delay(hits, base_seconds=2, max_seconds=60)
            if e.retry_after is not None:
                delay = max(delay, e.retry_after)
            logger.warning("sync.batch.rate_limited shop_id=%s tag=%s page=%s hit=%s/%s sleep=%.2fs",
                           ctx.shop_id, tag, page, hits, max_hits, delay)
            sleep(delay)


def _run_page(
    ctx: SyncContext,
    pool: ThreadPoolExecutor,
    workers: int,
    asset_ids: list[str],
    result: BatchSyncResult,
    keep_going: ShouldContinue,
) -> bool:
    """Run one page with at most `workers` items in flight. False when cancelled mid-page."""
    in_flight: dict[Future, str] = {}
    completed: dict[str, AssetSyncResult] = {}
    cancelled = False

    for asset_id in asset_ids:
        if not keep_going():
            cancelled = True
            break
        if len(in_flight) >= workers:
            _drain(in_flight, completed, FIRST_COMPLETED)
        in_flight[pool.submit(sync_asset, ctx, asset_id)] = asset_id

    _drain(in_flight, completed, None)

    # tally in catalog order so error lists are stable
    for asset_id in asset_ids:
        if asset_id in completed:
            result.add(completed[asset_id])
    return not cancelled


def _drain(in_flight: dict[Future, str], completed: dict[str, AssetSyncResult], return_when) -> None:
    if not in_flight:
        return
    if return_when is None:
        done, _ = wait(list(in_flight))
    else:
        done, _ = wait(list(in_flight), return_when=return_when)
    for fut in done:
        asset_id = in_flight.pop(fut)
        try:
            completed[asset_id] = fut.result()
        except Exception as e:
            logger.exception("sync.batch.asset_crashed asset_id=%s", asset_id)
            completed[asset_id] = AssetSyncResult(
                asset_id=asset_id,
                error=DestinationWriteError(f"unexpected error syncing {asset_id}: {e!r}", asset_id=asset_id),
            )
