"""
Shopify file naming for DAM assets.

Every managed file is named "<assetId>__<rest>": the lookup key always leads so
find_file_by_asset_id can search by prefix. <rest> is built from the shop settings:

    folder template   "dam/{tag}/{dateCreated:YYYY}"  (optional)
    file_name_prefix  prepended to the original name
    file_name_suffix  inserted before the extension

Shopify file names cannot hold "/", so the rendered folder is flattened with "_".

Template placeholders:
    {tag}                  first asset tag that is a sync tag, else first tag, else "uncategorized"
    {dateCreated:YYYY|MM|DD}, {dateModified:YYYY|MM|DD}
    {name}                 asset name, path-sanitized
    {type}                 asset type ("image", ...), "file" when unknown
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Optional, Sequence

from asset_sync.integrations.dam.normalizers import DAMAsset


BINDING_SEPARATOR = "__"
DEFAULT_FOLDER = "dam"

_PLACEHOLDER = re.compile(r"\{(tag|name|type|dateCreated:(?:YYYY|MM|DD)|dateModified:(?:YYYY|MM|DD))\}")


def render_folder(template: Optional[str], asset: DAMAsset, sync_tags: Sequence[str] = ()) -> str:
    """Folder path for one asset; '' when no template is configured."""
    if not template or not template.strip():
        return ""

    values = {
        "tag": _path_part(_matching_tag(asset.tags, sync_tags)),
        "name": _path_part(asset.name or "asset") or "asset",
        "type": asset.type or "file",
    }
    for label, raw in (("dateCreated", asset.date_created), ("dateModified", asset.date_modified)):
        year, month, day = _date_parts(raw)
        values[f"{label}:YYYY"] = year
        values[f"{label}:MM"] = month
        values[f"{label}:DD"] = day

    rendered = _PLACEHOLDER.sub(lambda m: values[m.group(1)], template.strip())
    rendered = re.sub(r"/+", "/", rendered).strip("/")
    return rendered or DEFAULT_FOLDER


def bound_filename(
    asset_id: str,
    filename: str,
    prefix: Optional[str] = None,
    suffix: Optional[str] = None,
    folder: Optional[str] = None,
) -> str:
    """'<assetId>__[<folder>_]<prefix><stem><suffix><ext>'"""
    name = f"{prefix or ''}{filename or 'file'}"
    if suffix:
        stem, dot, ext = name.rpartition(".")
        name = f"{stem}{suffix}.{ext}" if dot and stem else f"{name}{suffix}"
    if folder:
        name = f"{folder}/{name}"
    return f"{asset_id}{BINDING_SEPARATOR}{_safe(name)}"


# ---------- helpers ----------
def _safe(text: str) -> str:
    return "".join(ch if ch.isalnum() or ch in "._-" else "_" for ch in text)


def _path_part(value: str) -> str:
    text = re.sub(r"[^a-z0-9-]", "-", (value or "").lower())
    return re.sub(r"-+", "-", text).strip("-")


def _matching_tag(tags: Sequence[str], sync_tags: Sequence[str]) -> str:
    if not tags:
        return "uncategorized"
    for tag in tags:
        if tag in sync_tags:
            return tag
    return tags[0] or "uncategorized"


def _date_parts(value: Optional[str]) -> tuple[str, str, str]:
    if not value:
        return "", "", ""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return "", "", ""
    return f"{parsed.year:04d}", f"{parsed.month:02d}", f"{parsed.day:02d}"
