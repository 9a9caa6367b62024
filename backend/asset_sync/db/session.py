# Engine/Session factory + FastAPI dependency

from __future__ import annotations
from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from asset_sync.core.config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # local runs against a file db; pool tuning below is Postgres only
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 10,          # resident connections
        "max_overflow": 20,       # burst connections (batch workers + webhooks)
        "pool_pre_ping": True,    # drop dead connections before use
        "pool_recycle": 1800,     # seconds; recycle before middleboxes cut idle links
    }


# ---- Engine ----
engine = create_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
    **_engine_kwargs(settings.DATABASE_URL),
)


# ---- Session Factory ----
# autocommit/autoflush off: repositories commit explicitly
SessionLocal: sessionmaker[Session] = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,  # objects stay readable after commit
    class_=Session,
    future=True,
)


'''
FastAPI dependency: one session per request
usage:
from asset_sync.db.session import get_db
def endpoint(db: Session = Depends(get_db)): ...
'''
def get_db() -> Generator[Session, None, None]:
    db: Session = SessionLocal()
    try:
        yield db    # repositories commit/rollback explicitly; no implicit commit here
    finally:
        db.close()


# ---- context manager for Celery tasks / scripts ----
@contextmanager
def session_scope() -> Iterator[Session]:
    db: Session = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def dispose_engine() -> None:
    """Release pooled connections; called from the FastAPI shutdown hook."""
    engine.dispose()
