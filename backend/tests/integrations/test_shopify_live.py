"""Live Shopify checks, run by hand against a development store."""

import pytest

from asset_sync.core.config import settings
from asset_sync.integrations.shopify import ShopifyClient


def _has_shopify_credentials() -> bool:
    token = settings.SHOPIFY_ADMIN_TOKEN
    if hasattr(token, "get_secret_value"):
        token = token.get_secret_value()
    return bool(settings.SHOPIFY_SHOP and token)


pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        not _has_shopify_credentials(),
        reason="Shopify credentials are not configured (SHOPIFY_SHOP / SHOPIFY_ADMIN_TOKEN).",
    ),
]


@pytest.fixture()
def shopify_client() -> ShopifyClient:
    return ShopifyClient()


def test_ping_returns_shop_metadata(shopify_client: ShopifyClient):
    resp = shopify_client.ping()
    shop = (resp.get("data") or {}).get("shop") or {}
    assert shop.get("myshopifyDomain"), f"Unexpected ping payload: {resp}"


def test_unknown_asset_has_no_bound_file(shopify_client: ShopifyClient):
    assert shopify_client.find_file_by_asset_id("asset-sync-live-check-does-not-exist") is None
