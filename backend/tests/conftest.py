"""
Shared fixtures: in-memory SQLite bound into the app's SessionLocal, fake DAM /
Shopify collaborators and a recording metrics sink. No network, no broker.
"""

from __future__ import annotations

import os

# settings are read at import time; keep tests off any real database / broker
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("METRICS_ENABLED", "true")
os.environ.setdefault("DAM_WEBHOOK_VERIFY_SIGNATURE", "true")
os.environ.setdefault("BACKEND_CORS_ORIGINS", "http://localhost:5173")

from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from asset_sync.db import session as db_session
from asset_sync.db.base import Base
from asset_sync.db import model  # noqa: F401  (registers tables)
from asset_sync.integrations.dam import DAMAsset, DAMNotFoundError, DownloadedFile, MediaPage
from asset_sync.integrations.shopify import BoundAsset, ManagedFile
from asset_sync.orchestration.asset_sync.context import SyncContext
from asset_sync.repository import shop_repo, webhook_repo


# ---------- database ----------
@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(eng)
    db_session.SessionLocal.configure(bind=eng)
    try:
        yield eng
    finally:
        db_session.SessionLocal.configure(bind=db_session.engine)
        Base.metadata.drop_all(eng)
        eng.dispose()


@pytest.fixture()
def db(engine):
    session = db_session.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def shop(db):
    return shop_repo.upsert(
        db,
        "demo-store.myshopify.com",
        dam_base_url="https://demo.dam.example",
        dam_permanent_token="dam-token",
        shopify_access_token="shpat_test",
        sync_tags="shopify-sync",
        webhook_secret="s3cret",
    )


@pytest.fixture()
def active_subscription(db, shop):
    return webhook_repo.activate_subscription(
        db, shop.id,
        endpoint="https://sync.example/api/v1/webhooks/dam/demo-store.myshopify.com",
        dam_webhook_id="wh-1",
    )


# ---------- fakes ----------
class RecordingMetrics:
    """MetricsCollector stand-in: keeps (type, name, value) tuples in memory."""

    def __init__(self, shop_id: str = "shop", sync_job_id: Optional[str] = None):
        self.shop_id = shop_id
        self.sync_job_id = sync_job_id
        self.records: list[tuple[str, str, float]] = []

    def for_job(self, sync_job_id):
        child = RecordingMetrics(self.shop_id, sync_job_id)
        child.records = self.records
        return child

    def record(self, metric_type, metric_name, value, metadata=None):
        self.records.append((metric_type, metric_name, value))

    def record_api_call(self, name, metadata=None):
        self.record("api_call", name, 1)

    def record_sync_duration(self, seconds):
        self.record("sync_duration", "sync_duration_seconds", seconds)

    def record_throughput(self, aps):
        self.record("throughput", "assets_per_second", aps)

    def record_error_rate(self, percent):
        self.record("error_rate", "error_rate_percent", percent)

    def record_rate_limit_hit(self, endpoint=None):
        self.record("rate_limit_hit", "rate_limit_hits", 1)

    def names(self, metric_type: str) -> list[str]:
        return [n for t, n, _ in self.records if t == metric_type]


class FakeDAM:
    """In-memory DAM catalog. fail_get / fail_download map asset id -> exception to raise."""

    portal_url = "https://demo.dam.example"

    def __init__(self, assets: Iterable[DAMAsset] = ()):
        self.assets: dict[str, DAMAsset] = {a.id: a for a in assets}
        self.fail_get: dict[str, Exception] = {}
        self.fail_download: dict[str, Exception] = {}
        self.list_errors: list[Exception] = []       # raised by list_assets, one per call, in order
        self.list_calls: list[tuple] = []
        self.get_calls: list[str] = []

    def permalink(self, asset_id: str) -> str:
        return f"{self.portal_url}/media/{asset_id}"

    def list_assets(self, tags, page=1, limit=50) -> MediaPage:
        self.list_calls.append((tuple(tags), page, limit))
        if self.list_errors:
            raise self.list_errors.pop(0)
        wanted = list(tags)
        matching = [a for a in self.assets.values() if not wanted or a.has_any_tag(wanted)]
        start = (page - 1) * limit
        return MediaPage(items=matching[start:start + limit], total=len(matching))

    def get_asset(self, asset_id: str) -> DAMAsset:
        self.get_calls.append(asset_id)
        if asset_id in self.fail_get:
            raise self.fail_get[asset_id]
        if asset_id not in self.assets:
            raise DAMNotFoundError(f"404 not found: v4/media/{asset_id}/", status_code=404)
        return self.assets[asset_id]

    def download_asset(self, asset: DAMAsset) -> DownloadedFile:
        if asset.id in self.fail_download:
            raise self.fail_download[asset.id]
        return DownloadedFile(content=b"\x89PNG\r\n\x1a\n" + asset.id.encode(), content_type="image/png",
                              filename=f"{asset.name or asset.id}.png")


class FakeShopify:
    """Files keyed by id; lookup goes through the bound asset id like the real client."""

    def __init__(self):
        self.files: dict[str, ManagedFile] = {}
        self.created: list[str] = []
        self.updated: list[str] = []
        self.fail_writes: dict[str, Exception] = {}
        self.filenames: dict[str, str] = {}
        self._seq = 0

    def bind(self, asset_id: str, version: Optional[int], tags: Optional[list] = None) -> ManagedFile:
        self._seq += 1
        f = ManagedFile(
            id=f"gid://shopify/MediaImage/{self._seq}",
            file_type="MediaImage",
            binding=BoundAsset(asset_id=asset_id, version=version, tags=tags),
        )
        self.files[f.id] = f
        return f

    def leave_unbound(self, asset_id: str) -> ManagedFile:
        """A file named for the asset whose metafields were never written."""
        self._seq += 1
        f = ManagedFile(id=f"gid://shopify/MediaImage/{self._seq}", file_type="MediaImage")
        self.files[f.id] = f
        self.filenames[f.id] = f"{asset_id}__orphan.png"
        return f

    def find_file_by_asset_id(self, asset_id: str) -> Optional[ManagedFile]:
        for f in self.files.values():
            if f.binding and f.binding.asset_id == asset_id:
                return f
        for f in self.files.values():
            if f.binding is None and self.filenames.get(f.id, "").startswith(f"{asset_id}__"):
                return f
        return None

    def create_file(self, *, content, content_type, filename, bound, alt=None) -> ManagedFile:
        if bound.asset_id in self.fail_writes:
            raise self.fail_writes[bound.asset_id]
        self._seq += 1
        f = ManagedFile(id=f"gid://shopify/MediaImage/{self._seq}", file_type="MediaImage", alt=alt, binding=bound)
        self.files[f.id] = f
        self.filenames[f.id] = filename
        self.created.append(bound.asset_id)
        return f

    def update_file(self, file_id, *, bound, content=None, content_type=None, filename=None, alt=None) -> ManagedFile:
        if bound.asset_id in self.fail_writes:
            raise self.fail_writes[bound.asset_id]
        f = replace(self.files[file_id], binding=bound, alt=alt)
        self.files[file_id] = f
        self.updated.append(bound.asset_id)
        return f


def make_asset(asset_id: str, version: int = 1, tags: Optional[list] = None, **kw) -> DAMAsset:
    return DAMAsset(
        id=asset_id,
        name=kw.pop("name", f"asset-{asset_id}"),
        tags=list(tags if tags is not None else ["shopify-sync"]),
        version=version,
        **kw,
    )


@dataclass
class Harness:
    dam: FakeDAM
    shopify: FakeShopify
    metrics: RecordingMetrics
    ctx: SyncContext = field(init=False)

    def __post_init__(self):
        self.ctx = SyncContext(
            shop_id=self.metrics.shop_id,
            dam=self.dam,
            shopify=self.shopify,
            metrics=self.metrics,
            sync_tags=["shopify-sync"],
            page_size=2,
            max_workers=1,
        )

    def factory(self):
        """context_factory for run_job / handle_webhook."""
        def _build(db, shop_id, job_id=None):
            self.ctx.shop_id = shop_id
            return self.ctx.for_job(job_id)
        return _build


@pytest.fixture()
def harness():
    return Harness(dam=FakeDAM(), shopify=FakeShopify(), metrics=RecordingMetrics())
