"""
Public surface of the DAM integration:
import from here, internals can move freely.
"""

from .http_client import DAMHttpClient
from .dam_assets import DAMAssetsAPI, MediaPage, DownloadedFile
from .normalizers import DAMAsset, MediaList, MediaArray, Malformed, decode_media_response, parse_asset
from .signature import verify_webhook_signature, extract_webhook_signature, compute_signature

from .errors import (
    DAMError, DAMAuthError, DAMClientError, DAMNotFoundError, DAMNetworkError,
    DAMServerError, DAMRateLimitError, DAMPayloadError,
)


__all__ = [
    "DAMHttpClient", "DAMAssetsAPI", "MediaPage", "DownloadedFile",
    "DAMAsset", "MediaList", "MediaArray", "Malformed", "decode_media_response", "parse_asset",
    "verify_webhook_signature", "extract_webhook_signature", "compute_signature",
    "DAMError", "DAMAuthError", "DAMClientError", "DAMNotFoundError", "DAMNetworkError",
    "DAMServerError", "DAMRateLimitError", "DAMPayloadError",
]
