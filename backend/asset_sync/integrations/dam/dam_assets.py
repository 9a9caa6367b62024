"""
DAM media + webhook subscription API on top of DAMHttpClient.
  - list_assets: one page of the tag-filtered catalog
  - get_asset:   media info, DAMNotFoundError when the asset is gone
  - download_asset: binary content; follows the {"s3_file": url} redirect JSON
  - create/delete_webhook_subscription: DAM side of the notification channel
"""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from asset_sync.integrations.dam.errors import DAMNotFoundError, DAMPayloadError
from asset_sync.integrations.dam.http_client import DAMHttpClient
from asset_sync.integrations.dam.normalizers import (
    DAMAsset, Malformed, decode_media_response, parse_asset,
)

logger = logging.getLogger(__name__)


MEDIA_ENDPOINT = "v4/media/"
WEBHOOK_SUBSCRIPTIONS_ENDPOINT = "v7/webhooks/public/api/subscriptions"
DEFAULT_WEBHOOK_EVENTS = ("asset.tagged", "media.tagged")
MAX_DOWNLOAD_REDIRECTS = 3


@dataclass(frozen=True)
class MediaPage:
    items: list[DAMAsset]
    total: Optional[int]


@dataclass(frozen=True)
class DownloadedFile:
    content: bytes
    content_type: str
    filename: str


class DAMAssetsAPI:

    def __init__(self, client: DAMHttpClient):
        self.client = client

    @property
    def portal_url(self) -> str:
        return self.client.portal_url

    def permalink(self, asset_id: str) -> str:
        return f"{self.portal_url}/media/{asset_id}"


    # ---------- media ----------
    def list_assets(self, tags: Iterable[str], page: int = 1, limit: int = 50) -> MediaPage:
        """One catalog page; page is 1-based. Raises DAMPayloadError on an undecodable body."""
        params: dict[str, Any] = {
            "page": max(1, int(page)),
            "limit": max(1, int(limit)),
            "total": 1,
        }
        tag_list = [t for t in tags if t]
        if tag_list:
            params["tags"] = ",".join(tag_list)

        payload = self.client.get_json(MEDIA_ENDPOINT, params=params)
        decoded = decode_media_response(payload)
        if isinstance(decoded, Malformed):
            raise DAMPayloadError(f"media list: {decoded.reason}")
        if decoded.skipped:
            logger.warning("dam.media.list skipped=%s entries without id page=%s", decoded.skipped, page)
        total = getattr(decoded, "total", None)
        return MediaPage(items=decoded.items, total=total)


    def get_asset(self, asset_id: str) -> DAMAsset:
        payload = self.client.get_json(f"{MEDIA_ENDPOINT}{asset_id}/", params={"versions": 1})
        asset = parse_asset(payload)
        if asset is None:
            raise DAMNotFoundError(f"asset {asset_id} not found in DAM", status_code=404)
        return asset


    def download_asset(self, asset: DAMAsset) -> DownloadedFile:
        """Fetch the original file. The download endpoint answers with JSON pointing at S3."""
        url = f"{self.client.base_url}{MEDIA_ENDPOINT}{asset.id}/download/"
        authenticated = True

        for _ in range(MAX_DOWNLOAD_REDIRECTS + 1):
            resp = self.client.get_raw(url, authenticated=authenticated)
            ctype = (resp.headers.get("Content-Type") or "application/octet-stream").split(";")[0].strip().lower()

            if "application/json" in ctype:
                try:
                    data = resp.json()
                except ValueError as e:
                    raise DAMPayloadError(f"download for {asset.id}: invalid JSON") from e
                s3_url = data.get("s3_file") if isinstance(data, dict) else None
                if not isinstance(s3_url, str) or not s3_url:
                    keys = sorted(data)[:10] if isinstance(data, dict) else type(data).__name__
                    raise DAMPayloadError(f"download for {asset.id}: JSON without s3_file ({keys})")
                logger.debug("dam.download.follow asset=%s", asset.id)
                url = s3_url
                authenticated = False   # presigned, no bearer
                continue

            filename = _filename_for(asset)
            return DownloadedFile(
                content=resp.content,
                content_type=fix_wildcard_mime(ctype, resp.content, filename),
                filename=filename,
            )

        raise DAMPayloadError(f"download for {asset.id}: too many redirects ({MAX_DOWNLOAD_REDIRECTS})")


    # ---------- webhook subscriptions ----------
    def create_webhook_subscription(self, callback_url: str, events: Iterable[str] = DEFAULT_WEBHOOK_EVENTS) -> dict:
        data = self.client.post_json(
            WEBHOOK_SUBSCRIPTIONS_ENDPOINT,
            json_body={"url": callback_url, "events": list(events)},
        )
        if not isinstance(data, dict) or not data.get("id"):
            raise DAMPayloadError(f"webhook subscription create: unexpected response {str(data)[:200]}")
        return data

    def delete_webhook_subscription(self, subscription_id: str) -> None:
        self.client.delete(f"{WEBHOOK_SUBSCRIPTIONS_ENDPOINT}/{subscription_id}")


# ---------- helpers ----------
_MAGIC = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"%PDF", "application/pdf"),
)


def fix_wildcard_mime(content_type: str, content: bytes, filename: str = "") -> str:
    """'image/*' or octet-stream -> a concrete type from magic bytes or the file name."""
    if content_type and "*" not in content_type and content_type != "application/octet-stream":
        return content_type
    head = content[:16]
    for magic, mime in _MAGIC:
        if head.startswith(magic):
            return mime
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    guessed, _ = mimetypes.guess_type(filename)
    if guessed:
        return guessed
    if content_type.startswith("image/"):
        return "image/jpeg"
    return "application/octet-stream"


def _filename_for(asset: DAMAsset) -> str:
    name = asset.name or f"dam-{asset.id}"
    if asset.extension and not name.lower().endswith("." + asset.extension.lower()):
        name = f"{name}.{asset.extension}"
    return name
