from __future__ import annotations
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Text, ForeignKey, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from asset_sync.db.base import Base, new_id
from asset_sync.utils.clock import now_utc


EVENT_SUCCESS = "success"
EVENT_FAILED = "failed"


"""
  webhook_subscriptions: inbound DAM notification channel per shop
  - deactivated on disconnect, never hard-deleted while events reference the shop
"""
class WebhookSubscription(Base):

    __tablename__ = "webhook_subscriptions"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    shop_id: Mapped[str] = mapped_column(String(32), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)
    dam_webhook_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False, default="asset.tagged")
    endpoint: Mapped[str] = mapped_column(String(1024), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=now_utc, server_default=func.now())
    deactivated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_webhook_subscriptions_shop_active", "shop_id", "active"),
    )


"""
  webhook_events: append-only audit trail of every inbound notification
  - inserted with status=success before dispatch, finalized once (processed_at)
"""
class WebhookEvent(Base):

    __tablename__ = "webhook_events"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    shop_id: Mapped[str] = mapped_column(String(32), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    asset_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=EVENT_SUCCESS)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    note: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=now_utc, server_default=func.now())

    __table_args__ = (
        Index("ix_webhook_events_shop_created", "shop_id", "created_at"),
        Index("ix_webhook_events_asset", "shop_id", "asset_id"),
    )
