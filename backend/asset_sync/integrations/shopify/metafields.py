"""
DAM asset <-> Shopify file metafields (namespace $app:dam).

Pure functions, no I/O. Both directions are total: missing or malformed
fields become None instead of raising. tags round-trip as an ordered JSON list,
so [] and None (absent) stay distinguishable.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from asset_sync.integrations.dam.normalizers import DAMAsset
from asset_sync.utils.clock import isoformat_z, now_utc


NAMESPACE = "$app:dam"

KEY_ASSET_ID = "asset_id"
KEY_PERMALINK = "permalink"
KEY_TAGS = "tags"
KEY_VERSION = "version"
KEY_SYNCED_AT = "synced_at"

METAFIELD_TYPES = {
    KEY_ASSET_ID: "single_line_text_field",
    KEY_PERMALINK: "url",
    KEY_TAGS: "list.single_line_text_field",
    KEY_VERSION: "number_integer",
    KEY_SYNCED_AT: "date_time",
}


@dataclass(frozen=True)
class BoundAsset:
    asset_id: str
    permalink: Optional[str] = None
    tags: Optional[list[str]] = None
    version: Optional[int] = None
    synced_at: Optional[str] = None


def to_destination_metadata(
    asset: DAMAsset,
    *,
    permalink: Optional[str] = None,
    synced_at: Optional[datetime] = None,
    version: Optional[int] = None,
) -> BoundAsset:
    """version overrides asset.version, e.g. with the effective version the sync compared."""
    return BoundAsset(
        asset_id=asset.id,
        permalink=permalink or None,
        tags=list(asset.tags) if asset.tags is not None else None,
        version=version if version is not None else asset.version,
        synced_at=isoformat_z(synced_at or now_utc()),
    )


def from_destination_metadata(record: Any) -> Optional[BoundAsset]:
    """
    record: {key: value} map, a list of {key, value} nodes, or a GraphQL
    connection {"edges": [{"node": {...}}]}. None when no asset_id is bound.
    """
    values = _as_value_map(record)
    asset_id = values.get(KEY_ASSET_ID)
    if not isinstance(asset_id, str) or not asset_id.strip():
        return None

    return BoundAsset(
        asset_id=asset_id.strip(),
        permalink=_str_or_none(values.get(KEY_PERMALINK)),
        tags=_decode_tags(values.get(KEY_TAGS)),
        version=_decode_version(values.get(KEY_VERSION)),
        synced_at=_str_or_none(values.get(KEY_SYNCED_AT)),
    )


def encode_metafield_values(bound: BoundAsset) -> dict[str, str]:
    """key -> string value as Shopify stores it; absent fields are omitted."""
    out = {KEY_ASSET_ID: bound.asset_id}
    if bound.permalink:
        out[KEY_PERMALINK] = bound.permalink
    if bound.tags is not None:
        out[KEY_TAGS] = json.dumps(list(bound.tags), ensure_ascii=False)
    if bound.version is not None:
        out[KEY_VERSION] = str(int(bound.version))
    if bound.synced_at:
        out[KEY_SYNCED_AT] = bound.synced_at
    return out


def build_metafields_input(owner_id: str, bound: BoundAsset) -> list[dict]:
    """MetafieldsSetInput list for metafieldsSet."""
    return [
        {
            "ownerId": owner_id,
            "namespace": NAMESPACE,
            "key": key,
            "type": METAFIELD_TYPES[key],
            "value": value,
        }
        for key, value in encode_metafield_values(bound).items()
    ]


# ---------- decoding helpers ----------
def _as_value_map(record: Any) -> dict[str, Any]:
    if record is None:
        return {}
    if isinstance(record, Mapping):
        if "edges" in record and isinstance(record.get("edges"), list):
            return _as_value_map([(e or {}).get("node") for e in record["edges"]])
        if "nodes" in record and isinstance(record.get("nodes"), list):
            return _as_value_map(record["nodes"])
        return dict(record)
    if isinstance(record, (list, tuple)):
        out: dict[str, Any] = {}
        for node in record:
            if isinstance(node, Mapping) and isinstance(node.get("key"), str):
                out[node["key"]] = node.get("value")
        return out
    return {}


def _decode_tags(value: Any) -> Optional[list[str]]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v is not None]
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return []
    try:
        parsed = json.loads(text)
    except ValueError:
        # legacy comma-joined value
        return [t.strip() for t in text.split(",") if t.strip()]
    if isinstance(parsed, list):
        return [str(v) for v in parsed if v is not None]
    return None


def _decode_version(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        try:
            return int(float(str(value).strip()))
        except (TypeError, ValueError, OverflowError):
            return None


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
