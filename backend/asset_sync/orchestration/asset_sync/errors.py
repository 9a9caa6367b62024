"""
   Sync engine error taxonomy.
   Per-asset failures (SourceFetchError / DestinationWriteError) are carried on
   results and never abort a batch; lifecycle and request errors are raised.
"""

from __future__ import annotations
from typing import Optional


class AssetSyncError(Exception):
    """Base for all sync engine errors."""


class _ClassifiedError(AssetSyncError):
    """Per-asset failure with a retry classification."""

    kind = "error"

    def __init__(self, message: str, *, transient: bool = False, asset_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.transient = transient
        self.asset_id = asset_id

    def to_entry(self, asset_id: Optional[str] = None) -> dict:
        """Shape stored in SyncJob.errors and returned by batch/retry runs."""
        return {
            "assetId": asset_id or self.asset_id,
            "message": self.message,
            "kind": self.kind,
            "transient": self.transient,
        }


class SourceFetchError(_ClassifiedError):
    """DAM unreachable, rate-limited, or the asset no longer exists."""

    kind = "source_fetch"


class DestinationWriteError(_ClassifiedError):
    """Shopify write failed, including validation (userErrors)."""

    kind = "destination_write"


class ConflictError(AssetSyncError):
    """A sync job for the shop is already pending or running."""


class InvalidStateTransition(AssetSyncError):
    """Illegal job status change (e.g. cancelling a completed job)."""


class InvalidArgument(AssetSyncError):
    """Malformed request, e.g. retry without exactly one of job_id / asset_ids."""


class SignatureInvalid(AssetSyncError):
    """Webhook signature did not match the shared secret."""


class ConfigurationError(AssetSyncError):
    """Shop missing or lacking DAM base URL / credentials."""


class NotFoundError(AssetSyncError):
    """Referenced job or shop does not exist (or belongs to another shop)."""
