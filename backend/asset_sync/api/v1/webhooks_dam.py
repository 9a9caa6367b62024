# inbound DAM notifications (asset tagged etc.)

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from asset_sync.db.session import SessionLocal
from asset_sync.orchestration.webhooks.ingest import WebhookOutcome, handle_webhook

router = APIRouter(prefix="/webhooks/dam", tags=["webhooks.dam"])


'''
POST /webhooks/dam/{shop_domain}
   - body is read raw: the signature is computed over the exact bytes
   - the sync itself is blocking I/O (requests), so it runs in the threadpool
   - status code comes from the ingest outcome; application failures still answer 200
'''
@router.post("/{shop_domain}")
async def dam_webhook(shop_domain: str, request: Request):
    raw = await request.body()
    headers = dict(request.headers)
    outcome = await run_in_threadpool(_ingest, raw, headers, shop_domain)
    return JSONResponse(status_code=outcome.status_code, content=outcome.body)


def _ingest(raw: bytes, headers: dict, shop_domain: str) -> WebhookOutcome:
    db = SessionLocal()
    try:
        return handle_webhook(db, raw, headers, shop_domain)
    finally:
        db.close()
