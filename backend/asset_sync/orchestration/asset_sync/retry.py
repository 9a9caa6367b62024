"""
Retry Engine: re-drive failed asset syncs through sync_asset.

Source of ids is exactly one of:
  - job_id:    the job's recorded error list (job must belong to the shop)
  - asset_ids: explicit ids; their last recorded error is looked up in the
               shop's most recent finished jobs, "unknown" when none is found
With only_transient=True, permanent/unknown entries are counted as skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from asset_sync.core.config import settings
from asset_sync.db.model.sync_job import JOB_COMPLETED, JOB_FAILED
from asset_sync.orchestration.asset_sync.context import SyncContext
from asset_sync.orchestration.asset_sync.error_categorization import (
    UNKNOWN, CategorizedError, categorize_entry,
)
from asset_sync.orchestration.asset_sync.errors import InvalidArgument, NotFoundError
from asset_sync.orchestration.asset_sync.single_asset import sync_asset
from asset_sync.repository import sync_job_repo

logger = logging.getLogger(__name__)


@dataclass
class RetryResult:
    processed: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    created: int = 0
    updated: int = 0
    errors: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "successful": self.successful,
            "failed": self.failed,
            "skipped": self.skipped,
            "created": self.created,
            "updated": self.updated,
            "errors": list(self.errors),
        }


def retry_failed_assets(
    db: Session,
    ctx: SyncContext,
    job_id: Optional[str] = None,
    asset_ids: Optional[Iterable[str]] = None,
    only_transient: bool = False,
) -> RetryResult:
    ids = [a for a in (asset_ids or []) if a]
    if bool(job_id) == bool(ids):
        raise InvalidArgument("provide exactly one of jobId or a non-empty assetIds list")

    if job_id:
        candidates = _from_job(db, ctx.shop_id, job_id)
    else:
        candidates = _from_recent_jobs(db, ctx.shop_id, ids)

    result = RetryResult()
    to_retry: list[CategorizedError] = []
    for c in candidates:
        if only_transient and not c.retryable:
            result.skipped += 1
            result.errors.append(_entry(c.asset_id, c.message, c.category))
        else:
            to_retry.append(c)

    logger.info("sync.retry.start shop_id=%s job_id=%s candidates=%s retrying=%s only_transient=%s",
                ctx.shop_id, job_id, len(candidates), len(to_retry), only_transient)

    for c in to_retry:
        res = sync_asset(ctx, c.asset_id)
        result.processed += 1
        if res.error is not None:
            result.failed += 1
            entry = res.error.to_entry(c.asset_id)
            entry["category"] = "transient" if res.error.transient else "permanent"
            result.errors.append(entry)
            continue
        result.successful += 1
        if res.created:
            result.created += 1
        elif res.updated:
            result.updated += 1

    logger.info("sync.retry.done shop_id=%s processed=%s ok=%s failed=%s skipped=%s",
                ctx.shop_id, result.processed, result.successful, result.failed, result.skipped)
    return result


# ---------- candidate resolution ----------
def _from_job(db: Session, shop_id: str, job_id: str) -> list[CategorizedError]:
    job = sync_job_repo.get(db, job_id)
    if job is None or job.shop_id != shop_id:
        raise NotFoundError(f"sync job {job_id} not found")
    return _dedupe(categorize_entry(e) for e in _job_error_entries(job.errors))


def _from_recent_jobs(db: Session, shop_id: str, asset_ids: list[str]) -> list[CategorizedError]:
    wanted = list(dict.fromkeys(asset_ids))
    found: dict[str, CategorizedError] = {}
    jobs = sync_job_repo.list_for_shop(
        db, shop_id, limit=settings.RETRY_LOOKBACK_JOBS, statuses=(JOB_COMPLETED, JOB_FAILED),
    )
    for job in jobs:                      # newest first, so the first hit is the latest error
        for entry in _job_error_entries(job.errors):
            aid = entry.get("assetId")
            if aid in wanted and aid not in found:
                found[aid] = categorize_entry(entry)

    return [
        found.get(aid) or CategorizedError(asset_id=aid, message="previous error not found", category=UNKNOWN)
        for aid in wanted
    ]


def _job_error_entries(raw: Any) -> list[dict]:
    """Stored errors are a list of entries; older rows may hold {assetId: message}."""
    if isinstance(raw, list):
        return [e for e in raw if isinstance(e, dict) and e.get("assetId")]
    if isinstance(raw, dict):
        return [{"assetId": k, "message": str(v)} for k, v in raw.items()]
    return []


def _dedupe(items: Iterable[CategorizedError]) -> list[CategorizedError]:
    out: dict[str, CategorizedError] = {}
    for c in items:
        if c.asset_id and c.asset_id not in out:
            out[c.asset_id] = c
    return list(out.values())


def _entry(asset_id: Optional[str], message: str, category: str) -> dict:
    return {"assetId": asset_id, "message": message, "kind": "skipped", "transient": False, "category": category}
