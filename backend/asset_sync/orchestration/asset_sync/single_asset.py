"""
Single-asset sync: the atomic unit every path goes through
(webhook, batch job, retry).

  1) fetch media info from the DAM
  2) tag gate: shops with sync tags only mirror assets carrying one of them
  3) find the Shopify file bound to this asset id ($app:dam.asset_id);
     a file named for the asset but left without binding counts as version 0
  4) absent  -> download + create file + metafields          => created
     present -> version not newer than the bound one          => skipped
                otherwise upload new content + metafields     => updated

Per-asset failures come back on the result as SourceFetchError /
DestinationWriteError; nothing is retried here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from asset_sync.integrations.dam import (
    DAMAsset, DAMError, DAMNetworkError, DAMRateLimitError, DAMServerError,
)
from asset_sync.integrations.shopify import ShopifyError, bound_filename, render_folder, to_destination_metadata
from asset_sync.orchestration.asset_sync.context import SyncContext
from asset_sync.orchestration.asset_sync.errors import DestinationWriteError, SourceFetchError

logger = logging.getLogger(__name__)


AssetError = Union[SourceFetchError, DestinationWriteError]

_TRANSIENT_DAM_ERRORS = (DAMRateLimitError, DAMNetworkError, DAMServerError)


@dataclass
class AssetSyncResult:
    asset_id: str
    created: bool = False
    updated: bool = False
    skipped: bool = False
    error: Optional[AssetError] = None
    file_id: Optional[str] = None
    reason: Optional[str] = None        # why it was skipped

    @property
    def ok(self) -> bool:
        return self.error is None


def sync_asset(ctx: SyncContext, asset_id: str) -> AssetSyncResult:
    # 1) source
    try:
        ctx.metrics.record_api_call("dam_getMediaInfo")
        asset = ctx.dam.get_asset(asset_id)
    except DAMError as e:
        return _failed(ctx, asset_id, SourceFetchError(
            f"DAM fetch failed for {asset_id}: {e}",
            transient=isinstance(e, _TRANSIENT_DAM_ERRORS),
            asset_id=asset_id,
        ))

    # 2) tag gate
    if ctx.sync_tags and not asset.has_any_tag(ctx.sync_tags):
        logger.debug("sync.asset.skip asset_id=%s reason=no_sync_tag tags=%s", asset_id, asset.tags)
        return AssetSyncResult(asset_id=asset_id, skipped=True, reason="no_sync_tag")

    # 3) binding lookup
    try:
        ctx.metrics.record_api_call("shopify_findFile")
        existing = ctx.shopify.find_file_by_asset_id(asset_id)
    except ShopifyError as e:
        return _failed(ctx, asset_id, DestinationWriteError(
            f"Shopify lookup failed for {asset_id}: {e}", transient=e.transient, asset_id=asset_id,
        ))

    version = _current_version(asset)
    if existing is not None:
        bound_version = (existing.binding.version if existing.binding else None) or 0
        if version <= bound_version:
            return AssetSyncResult(asset_id=asset_id, skipped=True, file_id=existing.id, reason="up_to_date")

    # 4) content
    try:
        ctx.metrics.record_api_call("dam_download")
        downloaded = ctx.dam.download_asset(asset)
    except DAMError as e:
        return _failed(ctx, asset_id, SourceFetchError(
            f"DAM download failed for {asset_id}: {e}",
            transient=isinstance(e, _TRANSIENT_DAM_ERRORS),
            asset_id=asset_id,
        ))

    bound = to_destination_metadata(asset, permalink=ctx.dam.permalink(asset.id), version=version)
    filename = bound_filename(
        asset.id,
        downloaded.filename,
        prefix=ctx.file_name_prefix,
        suffix=ctx.file_name_suffix,
        folder=render_folder(ctx.file_folder_template, asset, ctx.sync_tags),
    )
    alt = _alt_text(ctx, asset)

    try:
        if existing is None:
            ctx.metrics.record_api_call("shopify_fileCreate")
            managed = ctx.shopify.create_file(
                content=downloaded.content,
                content_type=downloaded.content_type,
                filename=filename,
                bound=bound,
                alt=alt,
            )
            logger.info("sync.asset.created asset_id=%s file_id=%s version=%s", asset_id, managed.id, version)
            return AssetSyncResult(asset_id=asset_id, created=True, file_id=managed.id)

        ctx.metrics.record_api_call("shopify_fileUpdate")
        managed = ctx.shopify.update_file(
            existing.id,
            bound=bound,
            content=downloaded.content,
            content_type=downloaded.content_type,
            filename=filename,
            alt=alt,
        )
        logger.info("sync.asset.updated asset_id=%s file_id=%s version=%s", asset_id, managed.id, version)
        return AssetSyncResult(asset_id=asset_id, updated=True, file_id=managed.id)
    except ShopifyError as e:
        return _failed(ctx, asset_id, DestinationWriteError(
            f"Shopify write failed for {asset_id}: {e}", transient=e.transient, asset_id=asset_id,
        ))


def _current_version(asset: DAMAsset) -> int:
    # assets without a version count as 1, unbound files as 0
    return asset.version if asset.version is not None else 1


def _alt_text(ctx: SyncContext, asset: DAMAsset) -> str:
    text = (asset.description or asset.name or "").strip()
    if ctx.alt_text_prefix:
        text = f"{ctx.alt_text_prefix} {text}".strip()
    return text[:512]


def _failed(ctx: SyncContext, asset_id: str, error: AssetError) -> AssetSyncResult:
    logger.warning(
        "sync.asset.failed shop_id=%s job_id=%s asset_id=%s kind=%s transient=%s err=%s",
        ctx.shop_id, ctx.job_id, asset_id, error.kind, error.transient, error.message,
    )
    return AssetSyncResult(asset_id=asset_id, error=error)
