"""Webhook signature primitives: hex HMAC-SHA256 over the raw body."""

from __future__ import annotations

import hashlib
import hmac
from typing import Mapping, Optional, Union


SIGNATURE_HEADERS = (
    "x-bynder-signature",
    "x-dam-signature",
    "x-webhook-signature",
    "x-signature",
    "bynder-signature",
    "webhook-signature",
    "signature",
)

_PREFIXES = ("sha256=", "hmac-sha256=")


def compute_signature(secret: str, raw_body: Union[bytes, str]) -> str:
    body = raw_body.encode("utf-8") if isinstance(raw_body, str) else raw_body
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_webhook_signature(raw_body: Union[bytes, str], signature: Optional[str], secret: Optional[str]) -> bool:
    """Constant-time compare; accepts 'sha256=' / 'hmac-sha256=' prefixes and any hex case."""
    if not secret or not signature:
        return False
    provided = signature.strip()
    lowered = provided.lower()
    for prefix in _PREFIXES:
        if lowered.startswith(prefix):
            provided = provided[len(prefix):]
            break
    provided = provided.strip().lower()
    if not provided.isascii():
        return False
    expected = compute_signature(secret, raw_body)
    return hmac.compare_digest(provided, expected)


def extract_webhook_signature(headers: Mapping[str, str]) -> Optional[str]:
    """First non-empty signature header, matched case-insensitively."""
    lowered = {str(k).lower(): v for k, v in headers.items()}
    for name in SIGNATURE_HEADERS:
        value = lowered.get(name)
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        if value and str(value).strip():
            return str(value).strip()
    return None
