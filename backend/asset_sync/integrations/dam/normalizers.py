"""
Decode DAM media payloads at the boundary.

The media list endpoint answers in two shapes depending on query flags:
    {"media": [...], "total": {"count": N}}   (total=1)
    [...]                                      (plain)
Anything else is Malformed. Downstream code only ever sees DAMAsset.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union


@dataclass(frozen=True)
class DAMAsset:
    id: str
    name: Optional[str] = None
    type: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    version: Optional[int] = None
    description: Optional[str] = None
    extension: Optional[str] = None
    date_created: Optional[str] = None
    date_modified: Optional[str] = None
    original_url: Optional[str] = None
    raw: dict = field(default_factory=dict, repr=False, compare=False)

    def has_any_tag(self, wanted: list[str]) -> bool:
        return any(t in wanted for t in self.tags)


@dataclass(frozen=True)
class MediaList:
    items: list[DAMAsset]
    total: Optional[int]
    skipped: int = 0          # entries dropped for lacking an id


@dataclass(frozen=True)
class MediaArray:
    items: list[DAMAsset]
    skipped: int = 0


@dataclass(frozen=True)
class Malformed:
    reason: str
    raw: Any = field(default=None, repr=False)


MediaResponse = Union[MediaList, MediaArray, Malformed]


def decode_media_response(payload: Any) -> MediaResponse:
    if isinstance(payload, list):
        items, skipped = _parse_items(payload)
        return MediaArray(items=items, skipped=skipped)

    if isinstance(payload, dict):
        media = payload.get("media")
        if not isinstance(media, list):
            return Malformed(reason=f"'media' missing or not a list (keys={sorted(payload)[:10]})", raw=payload)
        items, skipped = _parse_items(media)
        return MediaList(items=items, total=_parse_total(payload.get("total")), skipped=skipped)

    return Malformed(reason=f"unexpected payload type {type(payload).__name__}", raw=payload)


def parse_asset(raw: Any) -> Optional[DAMAsset]:
    """One media dict -> DAMAsset; None when there is no usable id."""
    if not isinstance(raw, dict):
        return None
    asset_id = raw.get("id")
    if not isinstance(asset_id, str) or not asset_id.strip():
        return None

    return DAMAsset(
        id=asset_id.strip(),
        name=_str_or_none(raw.get("name")),
        type=_str_or_none(raw.get("type")),
        tags=_parse_tags(raw.get("tags")),
        version=_parse_version(raw.get("version")),
        description=_str_or_none(raw.get("description")),
        extension=_parse_extension(raw.get("extension")),
        date_created=_str_or_none(raw.get("dateCreated")),
        date_modified=_str_or_none(raw.get("dateModified")),
        original_url=_original_url(raw),
        raw=raw,
    )


# ---------- helpers ----------
def _parse_items(entries: list) -> tuple[list[DAMAsset], int]:
    items: list[DAMAsset] = []
    skipped = 0
    for entry in entries:
        asset = parse_asset(entry)
        if asset is None:
            skipped += 1
            continue
        items.append(asset)
    return items, skipped


def _parse_total(value: Any) -> Optional[int]:
    if isinstance(value, dict):
        value = value.get("count")
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _parse_tags(value: Any) -> list[str]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        return []
    out: list[str] = []
    for tag in value:
        if tag is None:
            continue
        text = str(tag).strip()
        if text and text not in out:
            out.append(text)
    return out


def _parse_version(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_extension(value: Any) -> Optional[str]:
    if isinstance(value, list):
        value = value[0] if value else None
    return _str_or_none(value)


def _original_url(raw: dict) -> Optional[str]:
    original = raw.get("original")
    if isinstance(original, str) and original:
        return original
    thumbs = raw.get("thumbnails")
    if isinstance(thumbs, dict) and isinstance(thumbs.get("original"), str):
        return thumbs["original"]
    files = raw.get("files")
    if isinstance(files, list):
        for f in files:
            if isinstance(f, dict) and isinstance(f.get("url"), str):
                return f["url"]
    return None


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
