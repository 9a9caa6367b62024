from fastapi import APIRouter

from .routes_health import router as health_router
from .shops import router as shops_router
from .sync import router as sync_router
from .metrics import router as metrics_router
from .webhook_subscriptions import router as webhook_subscriptions_router
from .webhooks_dam import router as webhooks_dam_router


# admin routes carry no auth dependency: request authentication sits in front of the service
api_v1 = APIRouter()
api_v1.include_router(health_router)
api_v1.include_router(shops_router)
api_v1.include_router(sync_router)
api_v1.include_router(metrics_router)
api_v1.include_router(webhook_subscriptions_router)

# server-to-server callbacks (signature checked in ingest)
api_v1.include_router(webhooks_dam_router)
