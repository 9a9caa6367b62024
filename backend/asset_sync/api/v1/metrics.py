# read-only metrics + alert views

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from asset_sync.db.session import get_db
from asset_sync.observability.alerts import get_shop_alerts
from asset_sync.observability.queries import get_job_metrics, get_metrics_summary

router = APIRouter(prefix="/shops/{shop_id}", tags=["metrics"])


@router.get("/metrics/summary")
def metrics_summary(shop_id: str, last_n_jobs: int = Query(10, ge=1, le=100), db: Session = Depends(get_db)):
    return get_metrics_summary(db, shop_id, last_n_jobs)


@router.get("/metrics/jobs/{job_id}")
def job_metrics(shop_id: str, job_id: str, db: Session = Depends(get_db)):
    data = get_job_metrics(db, shop_id, job_id)
    if data is None:
        raise HTTPException(status_code=404, detail="no metrics recorded for this job")
    return data


@router.get("/alerts")
def shop_alerts(shop_id: str, db: Session = Depends(get_db)):
    return {"alerts": [a.to_dict() for a in get_shop_alerts(db, shop_id)]}
