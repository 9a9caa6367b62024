# webhook subscriptions + webhook event log

from __future__ import annotations

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from asset_sync.db.model.webhook import WebhookSubscription, WebhookEvent, EVENT_SUCCESS
from asset_sync.utils.clock import now_utc


_MAX_ERROR_LEN = 2000


# ---------- Subscriptions ----------
def get_active_subscription(db: Session, shop_id: str) -> Optional[WebhookSubscription]:
    stmt = (
        select(WebhookSubscription)
        .where(WebhookSubscription.shop_id == shop_id, WebhookSubscription.active.is_(True))
        .order_by(WebhookSubscription.created_at.desc())
    )
    return db.scalars(stmt).first()


def list_subscriptions(db: Session, shop_id: str) -> list[WebhookSubscription]:
    stmt = (
        select(WebhookSubscription)
        .where(WebhookSubscription.shop_id == shop_id)
        .order_by(WebhookSubscription.created_at.desc())
    )
    return list(db.scalars(stmt))


def activate_subscription(
    db: Session,
    shop_id: str,
    *,
    endpoint: str,
    event_type: str = "asset.tagged",
    dam_webhook_id: Optional[str] = None,
) -> WebhookSubscription:
    """Record a newly registered channel. Older rows stay for history."""
    sub = WebhookSubscription(
        shop_id=shop_id,
        endpoint=endpoint,
        event_type=event_type,
        dam_webhook_id=dam_webhook_id,
        active=True,
    )
    db.add(sub)
    db.commit()
    return sub


def deactivate_subscriptions(db: Session, shop_id: str) -> list[WebhookSubscription]:
    """Flip every active subscription of the shop to inactive; returns the affected rows."""
    subs = list(db.scalars(
        select(WebhookSubscription)
        .where(WebhookSubscription.shop_id == shop_id, WebhookSubscription.active.is_(True))
    ))
    if not subs:
        return []
    now = now_utc()
    for sub in subs:
        sub.active = False
        sub.deactivated_at = now
    db.commit()
    return subs


# ---------- Events ----------
def log_event(
    db: Session,
    shop_id: str,
    *,
    event_type: str,
    payload: str,
    asset_id: Optional[str] = None,
    status: str = EVENT_SUCCESS,
    error: Optional[str] = None,
    finalized: bool = False,
) -> WebhookEvent:
    """
    Append an event row and commit immediately so the audit trail survives a crash mid-sync.
    finalized=True stamps processed_at now (outcome already known).
    """
    event = WebhookEvent(
        shop_id=shop_id,
        event_type=event_type or "unknown",
        asset_id=asset_id,
        status=status,
        payload=payload,
        error=_truncate(error),
        processed_at=now_utc() if finalized else None,
    )
    db.add(event)
    db.commit()
    return event


def finalize_event(
    db: Session,
    event_id: str,
    *,
    status: str,
    error: Optional[str] = None,
    note: Optional[str] = None,
) -> bool:
    """Record the outcome once; a second call is a no-op and returns False."""
    res = db.execute(
        update(WebhookEvent)
        .where(WebhookEvent.id == event_id, WebhookEvent.processed_at.is_(None))
        .values(status=status, error=_truncate(error), note=note, processed_at=now_utc())
        .execution_options(synchronize_session=False)
    )
    if res.rowcount:
        db.commit()
        return True
    db.rollback()
    return False


def list_events(db: Session, shop_id: str, *, limit: int = 50) -> list[WebhookEvent]:
    stmt = (
        select(WebhookEvent)
        .where(WebhookEvent.shop_id == shop_id)
        .order_by(WebhookEvent.created_at.desc())
        .limit(limit)
    )
    return list(db.scalars(stmt))


def _truncate(msg: Optional[str]) -> Optional[str]:
    if msg is None:
        return None
    return msg[:_MAX_ERROR_LEN] + "…" if len(msg) > _MAX_ERROR_LEN else msg
