"""
Connect / disconnect the DAM -> service notification channel for a shop.
DAM side first, then the local WebhookSubscription rows mirror it.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from asset_sync.core.config import settings
from asset_sync.db.model.shop import Shop
from asset_sync.db.model.webhook import WebhookSubscription
from asset_sync.integrations.dam import DAMAssetsAPI, DAMError, DAMNotFoundError
from asset_sync.orchestration.asset_sync.context import build_dam_api
from asset_sync.orchestration.asset_sync.errors import ConfigurationError, NotFoundError
from asset_sync.orchestration.webhooks.ingest import SYNC_EVENT_TYPES
from asset_sync.repository import shop_repo, webhook_repo

logger = logging.getLogger(__name__)


SUBSCRIBED_EVENTS = ("asset.tagged", "media.tagged")

DamFactory = Callable[[Shop], DAMAssetsAPI]


def callback_url(shop: Shop, base_url: Optional[str] = None) -> str:
    base = (base_url or settings.PUBLIC_BASE_URL or "").rstrip("/")
    if not base:
        raise ConfigurationError("PUBLIC_BASE_URL is not configured")
    return f"{base}{settings.API_PREFIX}/webhooks/dam/{shop.shop_domain}"


def connect(db: Session, shop_id: str, *, base_url: Optional[str] = None,
            dam_factory: DamFactory = build_dam_api) -> WebhookSubscription:
    """Register the callback with the DAM; an already active subscription is returned as is."""
    shop = _shop_or_404(db, shop_id)
    active = webhook_repo.get_active_subscription(db, shop.id)
    if active is not None:
        return active

    endpoint = callback_url(shop, base_url)
    dam = dam_factory(shop)
    created = dam.create_webhook_subscription(endpoint, SUBSCRIBED_EVENTS)
    sub = webhook_repo.activate_subscription(
        db, shop.id,
        endpoint=endpoint,
        event_type=",".join(SUBSCRIBED_EVENTS),
        dam_webhook_id=str(created["id"]),
    )
    logger.info("webhook.dam.connected shop=%s dam_webhook_id=%s", shop.shop_domain, sub.dam_webhook_id)
    return sub


def disconnect(db: Session, shop_id: str, *, dam_factory: DamFactory = build_dam_api) -> list[WebhookSubscription]:
    """Remove DAM-side subscriptions (already gone is fine) and deactivate local rows."""
    shop = _shop_or_404(db, shop_id)
    subs = webhook_repo.deactivate_subscriptions(db, shop.id)
    dam_ids = [s.dam_webhook_id for s in subs if s.dam_webhook_id]
    if dam_ids:
        dam = dam_factory(shop)
        for dam_id in dam_ids:
            try:
                dam.delete_webhook_subscription(dam_id)
            except DAMNotFoundError:
                logger.info("webhook.dam.already_removed shop=%s dam_webhook_id=%s", shop.shop_domain, dam_id)
            except DAMError as e:
                # local row is already inactive, events will be rejected either way
                logger.warning("webhook.dam.delete_failed shop=%s dam_webhook_id=%s err=%s",
                               shop.shop_domain, dam_id, e)
    logger.info("webhook.dam.disconnected shop=%s deactivated=%s", shop.shop_domain, len(subs))
    return subs


def supported_event_types() -> list[str]:
    return sorted(SYNC_EVENT_TYPES)


def _shop_or_404(db: Session, shop_id: str) -> Shop:
    shop = shop_repo.get(db, shop_id)
    if shop is None:
        raise NotFoundError(f"shop {shop_id} not found")
    return shop
