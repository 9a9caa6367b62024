from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from asset_sync.core.config import settings
from asset_sync.core.logging import configure_logging
from asset_sync.api.v1 import api_v1
from asset_sync.db.session import dispose_engine

configure_logging()

@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    dispose_engine()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# BACKEND_CORS_ORIGINS: comma separated admin UI origins
origins = [o.strip() for o in settings.BACKEND_CORS_ORIGINS.split(",") if o.strip()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


# Origin check on mutating requests; DAM callbacks come from servers, not browsers
TRUSTED = set(origins)
WEBHOOK_PATH_PREFIXES = (
    f"{settings.API_PREFIX}/webhooks/dam",
)

@app.middleware("http")
async def origin_check(request: Request, call_next):
    p = request.url.path

    if p.startswith(WEBHOOK_PATH_PREFIXES):
        return await call_next(request)

    if request.method in {"POST", "PUT", "PATCH", "DELETE"}:
        origin = request.headers.get("origin")
        # no Origin (curl, health checks, workers): allowed
        if not origin:
            return await call_next(request)
        if origin not in TRUSTED:
            return JSONResponse(status_code=403, content={"detail": "Bad Origin"})

    return await call_next(request)


app.include_router(api_v1, prefix=settings.API_PREFIX)


@app.get("/")
def root():
    return {
        "app": settings.PROJECT_NAME,
        "env": settings.ENVIRONMENT,
        "ok": True,
    }
