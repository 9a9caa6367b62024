from __future__ import annotations
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from asset_sync.db.base import Base, new_id
from asset_sync.utils.serialization import split_csv


"""
  shops table: one row per Shopify store (tenant)
  - dam_base_url / dam_permanent_token: DAM connection, NULL token falls back to settings
  - sync_tags: comma separated DAM tag filter for full and webhook syncs
  - file_folder_template / file_name_prefix / file_name_suffix: Shopify file naming, see integrations/shopify/file_template.py
"""
class Shop(Base):

    __tablename__ = "shops"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    shop_domain: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    dam_base_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    dam_permanent_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    shopify_access_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    webhook_secret: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    sync_tags: Mapped[str] = mapped_column(String(512), nullable=False, default="shopify-sync")
    auto_sync_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    file_name_prefix: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    file_name_suffix: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    file_folder_template: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    alt_text_prefix: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    @property
    def sync_tag_list(self) -> list[str]:
        return split_csv(self.sync_tags)
