# shops repository

from __future__ import annotations

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from asset_sync.db.model.shop import Shop
from asset_sync.utils.clock import now_utc


_UPDATABLE = {
    "dam_base_url", "dam_permanent_token", "shopify_access_token", "webhook_secret",
    "sync_tags", "auto_sync_enabled", "file_name_prefix", "file_name_suffix", "file_folder_template",
    "alt_text_prefix",
}


# ---------- Query ----------
def get(db: Session, shop_id: str) -> Optional[Shop]:
    return db.get(Shop, shop_id)


def get_by_domain(db: Session, shop_domain: str) -> Optional[Shop]:
    stmt = select(Shop).where(Shop.shop_domain == _normalize_domain(shop_domain))
    return db.scalars(stmt).first()


def list_auto_sync(db: Session) -> list[Shop]:
    """Shops opted into scheduled full syncs that have a DAM configured."""
    stmt = (
        select(Shop)
        .where(Shop.auto_sync_enabled.is_(True), Shop.dam_base_url.is_not(None))
        .order_by(Shop.shop_domain.asc())
    )
    return list(db.scalars(stmt))


# ---------- Mutations ----------
def upsert(db: Session, shop_domain: str, **fields) -> Shop:
    """Update by domain, insert when missing. Unknown keys are ignored."""
    domain = _normalize_domain(shop_domain)
    clean = {k: v for k, v in fields.items() if k in _UPDATABLE}

    if clean:
        res = db.execute(
            update(Shop).where(Shop.shop_domain == domain).values(**clean, updated_at=now_utc())
        )
        if res.rowcount:
            db.commit()
            row = get_by_domain(db, domain)
            assert row is not None
            db.refresh(row)
            return row

    existing = get_by_domain(db, domain)
    if existing is not None:
        return existing

    try:
        shop = Shop(shop_domain=domain, **clean)
        db.add(shop)
        db.commit()
        return shop
    except IntegrityError:
        # concurrent insert of the same domain
        db.rollback()
        row = get_by_domain(db, domain)
        if row is None:
            raise
        return row


def _normalize_domain(shop_domain: str) -> str:
    return (shop_domain or "").strip().lower()
