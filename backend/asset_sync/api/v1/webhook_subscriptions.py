# connect / disconnect the DAM webhook channel, inspect recent deliveries

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from asset_sync.api.v1.errors import http_error
from asset_sync.db.session import get_db
from asset_sync.integrations.dam import DAMError
from asset_sync.orchestration.asset_sync.errors import AssetSyncError
from asset_sync.orchestration.webhooks import subscriptions
from asset_sync.repository import webhook_repo
from asset_sync.utils.serialization import to_jsonable

router = APIRouter(prefix="/shops/{shop_id}/webhooks", tags=["webhooks.subscriptions"])


class ConnectRequest(BaseModel):
    base_url: Optional[str] = None      # overrides PUBLIC_BASE_URL (e.g. a tunnel during local testing)


@router.get("")
def webhook_status(shop_id: str, events: int = Query(20, ge=0, le=200), db: Session = Depends(get_db)):
    active = webhook_repo.get_active_subscription(db, shop_id)
    return {
        "active": active is not None,
        "subscription": _sub_out(active) if active else None,
        "history": [_sub_out(s) for s in webhook_repo.list_subscriptions(db, shop_id)],
        "eventTypes": subscriptions.supported_event_types(),
        "recentEvents": [
            to_jsonable({
                "id": e.id,
                "eventType": e.event_type,
                "assetId": e.asset_id,
                "status": e.status,
                "error": e.error,
                "note": e.note,
                "createdAt": e.created_at,
                "processedAt": e.processed_at,
            })
            for e in webhook_repo.list_events(db, shop_id, limit=events)
        ] if events else [],
    }


@router.post("/connect")
def connect(shop_id: str, body: Optional[ConnectRequest] = None, db: Session = Depends(get_db)):
    try:
        sub = subscriptions.connect(db, shop_id, base_url=body.base_url if body else None)
    except AssetSyncError as e:
        raise http_error(e)
    except DAMError as e:
        raise HTTPException(status_code=502, detail=f"DAM rejected the subscription: {e}")
    return {"success": True, "subscription": _sub_out(sub)}


@router.post("/disconnect")
def disconnect(shop_id: str, db: Session = Depends(get_db)):
    try:
        subs = subscriptions.disconnect(db, shop_id)
    except AssetSyncError as e:
        raise http_error(e)
    return {"success": True, "deactivated": len(subs)}


def _sub_out(sub) -> dict:
    return to_jsonable({
        "id": sub.id,
        "damWebhookId": sub.dam_webhook_id,
        "eventType": sub.event_type,
        "endpoint": sub.endpoint,
        "active": sub.active,
        "createdAt": sub.created_at,
        "deactivatedAt": sub.deactivated_at,
    })
