# Export entry for scripts / quick table creation

from .session import engine, SessionLocal, get_db, session_scope, dispose_engine
from asset_sync.db.model import *  # register every model on Base.metadata
from .base import Base


"""
    Dev only, create tables on an empty database:
        python -c "from asset_sync.db import create_all; create_all()"
    Production uses `alembic upgrade head`.
"""
def create_all() -> None:
    Base.metadata.create_all(bind=engine)
