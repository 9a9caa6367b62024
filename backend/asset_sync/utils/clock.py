from __future__ import annotations
from datetime import datetime, timezone

def now_utc() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)  # aligned with naive UTC DB columns


def isoformat_z(value: datetime) -> str:
    """ISO-8601 with a trailing Z, the shape Shopify date_time metafields expect."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=0).isoformat() + "Z"
