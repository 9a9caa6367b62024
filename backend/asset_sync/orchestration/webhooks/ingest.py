"""
DAM webhook ingestion.

    received -> (no active subscription) -> logged failed, 200
    received -> logged -> dispatched -> success | failed

HTTP status is decoupled from the sync outcome: only malformed payloads (400),
unknown/unconfigured shops (400) and bad signatures (401) are rejected, every
application-level failure answers 200 with success=false so the sender does not
retry a poison asset forever.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Union

from sqlalchemy.orm import Session

from asset_sync.core.config import settings
from asset_sync.db.model.shop import Shop
from asset_sync.db.model.webhook import EVENT_FAILED, EVENT_SUCCESS
from asset_sync.integrations.dam import extract_webhook_signature, verify_webhook_signature
from asset_sync.orchestration.asset_sync.context import SyncContext, build_sync_context
from asset_sync.orchestration.asset_sync.errors import ConfigurationError, SignatureInvalid
from asset_sync.orchestration.asset_sync.single_asset import sync_asset
from asset_sync.repository import shop_repo, webhook_repo

logger = logging.getLogger(__name__)


SYNC_EVENT_TYPES = frozenset({
    "asset.tagged",
    "media.tagged",
    "asset.tags.added",
    "media.tags.added",
    "asset_bank.media.tagged",
})

SUBSCRIPTION_INACTIVE = "subscription inactive"


@dataclass
class WebhookOutcome:
    status_code: int
    body: dict = field(default_factory=dict)


def handle_webhook(
    db: Session,
    raw_body: Union[bytes, str],
    headers: Mapping[str, str],
    shop_domain: str,
    *,
    context_factory: Callable[..., SyncContext] = build_sync_context,
    verify_signature: Optional[bool] = None,
) -> WebhookOutcome:
    raw_text = raw_body.decode("utf-8", errors="replace") if isinstance(raw_body, bytes) else raw_body

    # 1) payload
    try:
        body = json.loads(raw_text)
    except ValueError:
        return WebhookOutcome(400, {"error": "Invalid JSON payload"})
    if not isinstance(body, dict):
        return WebhookOutcome(400, {"error": "Invalid JSON payload"})

    # 2) shop
    shop = shop_repo.get_by_domain(db, shop_domain) if shop_domain else None
    if shop is None or not shop.dam_base_url:
        return WebhookOutcome(400, {"error": "Shop not configured"})

    event_type = _event_type(body)
    asset_id = _asset_id(body)

    # 3) subscription gate
    if webhook_repo.get_active_subscription(db, shop.id) is None:
        webhook_repo.log_event(
            db, shop.id,
            event_type=event_type, payload=raw_text, asset_id=asset_id,
            status=EVENT_FAILED, error=SUBSCRIPTION_INACTIVE, finalized=True,
        )
        logger.info("webhook.dam.inactive shop=%s event=%s asset_id=%s", shop.shop_domain, event_type, asset_id)
        return WebhookOutcome(200, {"success": False, "message": "Webhook subscription is not active"})

    # 4) authenticity
    try:
        _check_signature(shop, raw_body, headers, verify_signature)
    except SignatureInvalid:
        logger.warning("webhook.dam.bad_signature shop=%s event=%s", shop.shop_domain, event_type)
        return WebhookOutcome(401, {"error": "Invalid signature"})

    # 5) audit row before any work
    event = webhook_repo.log_event(
        db, shop.id, event_type=event_type, payload=raw_text, asset_id=asset_id, status=EVENT_SUCCESS,
    )

    if not asset_id:
        webhook_repo.finalize_event(db, event.id, status=EVENT_FAILED, error="missing asset id")
        return WebhookOutcome(400, {"error": "Missing asset ID"})

    if event_type not in SYNC_EVENT_TYPES:
        webhook_repo.finalize_event(
            db, event.id, status=EVENT_SUCCESS, note=f"event type {event_type!r} does not trigger a sync",
        )
        return WebhookOutcome(200, {"success": True, "ignored": True, "eventType": event_type})

    # 6) dispatch
    try:
        ctx = context_factory(db, shop.id)
    except ConfigurationError as e:
        webhook_repo.finalize_event(db, event.id, status=EVENT_FAILED, error=str(e))
        return WebhookOutcome(200, {"success": False, "error": str(e)})

    result = sync_asset(ctx, asset_id)
    if result.error is not None:
        webhook_repo.finalize_event(db, event.id, status=EVENT_FAILED, error=result.error.message)
        return WebhookOutcome(200, {"success": False, "error": result.error.message})

    note = f"skipped: {result.reason}" if result.reason else None
    webhook_repo.finalize_event(db, event.id, status=EVENT_SUCCESS, note=note)
    logger.info(
        "webhook.dam.synced shop=%s asset_id=%s created=%s updated=%s skipped=%s",
        shop.shop_domain, asset_id, result.created, result.updated, result.skipped,
    )
    return WebhookOutcome(200, {
        "success": True,
        "created": int(result.created),
        "updated": int(result.updated),
        "skipped": int(result.skipped),
    })


def _check_signature(shop: Shop, raw_body: Union[bytes, str], headers: Mapping[str, str],
                     verify_signature: Optional[bool]) -> None:
    enabled = settings.DAM_WEBHOOK_VERIFY_SIGNATURE if verify_signature is None else verify_signature
    secret = shop.webhook_secret or settings.DAM_WEBHOOK_SECRET
    if not enabled or not secret:
        return
    signature = extract_webhook_signature(headers)
    if signature is None:
        # some DAM senders never sign; accept but leave a trace
        logger.warning("webhook.dam.unsigned shop=%s", shop.shop_domain)
        return
    if not verify_webhook_signature(raw_body, signature, secret):
        raise SignatureInvalid(f"signature mismatch for {shop.shop_domain}")


def _event_type(body: dict) -> str:
    value = body.get("eventType") or body.get("type") or ""
    return str(value).strip() or "unknown"


def _asset_id(body: dict) -> Optional[str]:
    value: Any = body.get("assetId")
    if not value and isinstance(body.get("asset"), dict):
        value = body["asset"].get("id")
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    text = str(value).strip()
    return text or None
