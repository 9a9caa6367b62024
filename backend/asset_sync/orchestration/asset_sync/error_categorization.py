"""
Transient vs permanent classification of recorded per-asset errors.

A stored `transient` flag wins. Older or free-form entries fall back to message
patterns: transient patterns are checked first, then permanent ones; anything
else is "unknown" and treated as not retryable.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional


TRANSIENT = "transient"
PERMANENT = "permanent"
UNKNOWN = "unknown"

_TRANSIENT_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (
    r"timeout", r"timed out", r"rate.?limit", r"temporar", r"\b50[234]\b", r"\b429\b",
    r"network", r"connection", r"econnreset", r"etimedout", r"enotfound", r"econnrefused",
    r"service unavailable", r"bad gateway", r"too many requests", r"throttled", r"retry",
)]

_PERMANENT_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (
    r"not found", r"\b404\b", r"unauthori[sz]ed", r"\b401\b", r"forbidden", r"\b403\b",
    r"\b400\b", r"\b405\b", r"bad request", r"malformed", r"invalid", r"unsupported",
    r"not supported", r"not allowed", r"permission denied", r"access denied",
    r"authentication failed", r"expired token", r"validation", r"usererrors", r"corrupt",
)]


@dataclass(frozen=True)
class CategorizedError:
    asset_id: Optional[str]
    message: str
    category: str

    @property
    def retryable(self) -> bool:
        return self.category == TRANSIENT

    def to_dict(self) -> dict:
        return {
            "assetId": self.asset_id,
            "message": self.message,
            "category": self.category,
            "retryable": self.retryable,
        }


def categorize_message(message: str) -> str:
    text = (message or "").strip()
    for pattern in _TRANSIENT_PATTERNS:
        if pattern.search(text):
            return TRANSIENT
    for pattern in _PERMANENT_PATTERNS:
        if pattern.search(text):
            return PERMANENT
    return UNKNOWN


def categorize_entry(entry: Mapping[str, Any]) -> CategorizedError:
    """entry: a stored job error {assetId, message, kind?, transient?}."""
    message = str(entry.get("message") or entry.get("error") or "")
    flag = entry.get("transient")
    if isinstance(flag, bool):
        category = TRANSIENT if flag else PERMANENT
    else:
        category = categorize_message(message)
    asset_id = entry.get("assetId")
    return CategorizedError(asset_id=str(asset_id) if asset_id is not None else None, message=message, category=category)


def categorize_entries(entries: Iterable[Mapping[str, Any]]) -> dict[str, list[CategorizedError]]:
    grouped: dict[str, list[CategorizedError]] = {TRANSIENT: [], PERMANENT: [], UNKNOWN: []}
    for entry in entries:
        c = categorize_entry(entry)
        grouped[c.category].append(c)
    return grouped
