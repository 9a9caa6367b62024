# Aggregate model imports so Alembic sees every table

from .shop import Shop
from .sync_job import SyncJob
from .webhook import WebhookSubscription, WebhookEvent
from .metric import SyncMetric

__all__ = [
    "Shop", "SyncJob", "WebhookSubscription", "WebhookEvent", "SyncMetric",
]
