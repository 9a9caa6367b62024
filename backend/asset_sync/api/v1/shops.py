# shop (tenant) configuration: DAM connection, sync tags, auto-sync switch

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from asset_sync.db.session import get_db
from asset_sync.repository import shop_repo

router = APIRouter(prefix="/shops", tags=["shops"])


class ShopOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    shop_domain: str
    dam_base_url: Optional[str] = None
    sync_tags: str
    auto_sync_enabled: bool
    file_name_prefix: Optional[str] = None
    file_name_suffix: Optional[str] = None
    file_folder_template: Optional[str] = None
    alt_text_prefix: Optional[str] = None
    has_webhook_secret: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# secrets are write-only: accepted here, never echoed back
class ShopUpsert(BaseModel):
    dam_base_url: Optional[str] = Field(None, max_length=512)
    dam_permanent_token: Optional[str] = None
    shopify_access_token: Optional[str] = None
    webhook_secret: Optional[str] = Field(None, max_length=255)
    sync_tags: Optional[str] = Field(None, max_length=512)
    auto_sync_enabled: Optional[bool] = None
    file_name_prefix: Optional[str] = Field(None, max_length=64)
    file_name_suffix: Optional[str] = Field(None, max_length=64)
    file_folder_template: Optional[str] = Field(None, max_length=255)
    alt_text_prefix: Optional[str] = Field(None, max_length=128)


@router.put("/{shop_domain}", response_model=ShopOut)
def upsert_shop(shop_domain: str, body: ShopUpsert, db: Session = Depends(get_db)) -> ShopOut:
    if not shop_domain.strip():
        raise HTTPException(status_code=400, detail="shop domain required")
    shop = shop_repo.upsert(db, shop_domain, **body.model_dump(exclude_unset=True))
    return _to_out(shop)


@router.get("/{shop_domain}", response_model=ShopOut)
def get_shop(shop_domain: str, db: Session = Depends(get_db)) -> ShopOut:
    shop = shop_repo.get_by_domain(db, shop_domain)
    if shop is None:
        raise HTTPException(status_code=404, detail="shop not found")
    return _to_out(shop)


def _to_out(shop) -> ShopOut:
    out = ShopOut.model_validate(shop)
    out.has_webhook_secret = bool(shop.webhook_secret)
    return out
