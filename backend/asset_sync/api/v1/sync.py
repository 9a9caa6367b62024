# full sync trigger / job status / cancel / retry

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from asset_sync.api.v1.errors import http_error
from asset_sync.db.session import get_db
from asset_sync.orchestration.asset_sync.context import build_sync_context
from asset_sync.orchestration.asset_sync.errors import AssetSyncError
from asset_sync.orchestration.asset_sync.retry import retry_failed_assets
from asset_sync.orchestration.sync_jobs import lifecycle
from asset_sync.orchestration.sync_jobs.sync_job_task import start_full_sync
from asset_sync.repository import shop_repo, sync_job_repo

router = APIRouter(prefix="/shops/{shop_id}/sync", tags=["sync"])


class SyncJobOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    shop_id: str
    status: str
    trigger: str
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    assets_processed: int = 0
    assets_created: int = 0
    assets_updated: int = 0
    errors: Optional[list] = None
    error: Optional[str] = None


class RetryRequest(BaseModel):
    job_id: Optional[str] = Field(None, alias="jobId")
    asset_ids: Optional[List[str]] = Field(None, alias="assetIds")
    only_transient: bool = Field(False, alias="onlyTransient")

    model_config = ConfigDict(populate_by_name=True)


@router.post("", status_code=202)
def trigger_full_sync(shop_id: str, db: Session = Depends(get_db)):
    """Enqueue a manual full sync; 409 while another job of the shop is pending/running."""
    if shop_repo.get(db, shop_id) is None:
        raise HTTPException(status_code=404, detail="shop not found")
    try:
        job_id = start_full_sync(shop_id, trigger="manual")
    except AssetSyncError as e:
        raise http_error(e)
    return {"jobId": job_id, "status": sync_job_repo.get_status(db, job_id)}


@router.get("/jobs", response_model=List[SyncJobOut])
def list_jobs(shop_id: str, limit: int = Query(20, ge=1, le=200), db: Session = Depends(get_db)):
    return sync_job_repo.list_for_shop(db, shop_id, limit=limit)


@router.get("/jobs/{job_id}", response_model=SyncJobOut)
def get_job(shop_id: str, job_id: str, db: Session = Depends(get_db)):
    job = sync_job_repo.get(db, job_id)
    if job is None or job.shop_id != shop_id:
        raise HTTPException(status_code=404, detail="sync job not found")
    return job


@router.post("/jobs/{job_id}/cancel", response_model=SyncJobOut)
def cancel_job(shop_id: str, job_id: str, db: Session = Depends(get_db)):
    try:
        return lifecycle.cancel(db, job_id, shop_id=shop_id)
    except AssetSyncError as e:
        raise http_error(e)


@router.post("/retry")
def retry(shop_id: str, body: RetryRequest, db: Session = Depends(get_db)):
    """Re-run failed assets of one job, or an explicit id list. Runs in the request."""
    try:
        ctx = build_sync_context(db, shop_id)
        result = retry_failed_assets(
            db, ctx,
            job_id=body.job_id,
            asset_ids=body.asset_ids,
            only_transient=body.only_transient,
        )
    except AssetSyncError as e:
        raise http_error(e)
    return result.to_dict()
