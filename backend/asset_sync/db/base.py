# Shared ORM base + naming convention

from __future__ import annotations
import uuid

from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.schema import MetaData

# Stable constraint/index names so Alembic autogenerate stays predictable
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def new_id() -> str:
    """32-char hex primary key, portable across Postgres and SQLite."""
    return uuid.uuid4().hex
