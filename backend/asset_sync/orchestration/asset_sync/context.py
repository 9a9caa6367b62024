"""
SyncContext: everything one shop's sync needs, passed explicitly.
Built once per job / webhook / retry request from the Shop row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from sqlalchemy.orm import Session

from asset_sync.core.config import settings
from asset_sync.db.model.shop import Shop
from asset_sync.integrations.dam import DAMAssetsAPI, DAMHttpClient
from asset_sync.integrations.shopify import ShopifyClient
from asset_sync.observability.collector import MetricsCollector
from asset_sync.orchestration.asset_sync.errors import ConfigurationError
from asset_sync.repository import shop_repo

logger = logging.getLogger(__name__)


@dataclass
class SyncContext:
    shop_id: str
    dam: DAMAssetsAPI
    shopify: ShopifyClient
    metrics: MetricsCollector
    job_id: Optional[str] = None
    sync_tags: list[str] = field(default_factory=list)
    file_name_prefix: Optional[str] = None
    file_name_suffix: Optional[str] = None
    file_folder_template: Optional[str] = None
    alt_text_prefix: Optional[str] = None
    page_size: int = field(default_factory=lambda: settings.SYNC_PAGE_SIZE)
    max_workers: int = field(default_factory=lambda: settings.SYNC_MAX_CONCURRENCY)

    def for_job(self, job_id: Optional[str]) -> "SyncContext":
        return replace(self, job_id=job_id, metrics=self.metrics.for_job(job_id))


def build_sync_context(db: Session, shop_id: str, job_id: Optional[str] = None) -> SyncContext:
    """Raises ConfigurationError when the shop is unknown or its DAM / Shopify credentials are incomplete."""
    shop = shop_repo.get(db, shop_id)
    if shop is None:
        raise ConfigurationError(f"shop {shop_id} not found")
    if not shop.dam_base_url:
        raise ConfigurationError(f"shop {shop.shop_domain} has no DAM base URL configured")

    metrics = MetricsCollector(shop.id, job_id)
    dam = build_dam_api(shop, metrics)
    try:
        shopify = ShopifyClient(shop.shop_domain, shop.shopify_access_token)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    return SyncContext(
        shop_id=shop.id,
        job_id=job_id,
        dam=dam,
        shopify=shopify,
        metrics=metrics,
        sync_tags=shop.sync_tag_list or settings.default_sync_tags,
        file_name_prefix=shop.file_name_prefix,
        file_name_suffix=shop.file_name_suffix,
        file_folder_template=shop.file_folder_template,
        alt_text_prefix=shop.alt_text_prefix,
    )


def build_dam_api(shop: Shop, metrics: Optional[MetricsCollector] = None) -> DAMAssetsAPI:
    """DAM client for one shop; every 429 is reported as a rate_limit_hit metric."""
    if not shop.dam_base_url:
        raise ConfigurationError(f"shop {shop.shop_domain} has no DAM base URL configured")
    sink = metrics or MetricsCollector(shop.id)

    def _on_rate_limit(path: str, attempt: int) -> None:
        logger.info("sync.dam.rate_limited shop_id=%s path=%s attempt=%s", shop.id, path, attempt)
        sink.record_rate_limit_hit(path)

    try:
        client = DAMHttpClient(
            base_url=shop.dam_base_url,
            permanent_token=shop.dam_permanent_token,
            on_rate_limit=_on_rate_limit,
        )
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
    return DAMAssetsAPI(client)
