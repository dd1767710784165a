# rydz/database.py
from __future__ import annotations
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from . import config


def build_engine(url: str) -> Engine:
    url = config.normalize_database_url(url)
    if url.startswith("sqlite"):
        # in-memory databases must share one connection across threads
        if url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_pre_ping=True,   # auto-reconnect
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
    )


# --- engine ------------------------------
engine = build_engine(config.DATABASE_URL)


def get_session():
    with Session(engine) as session:
        yield session


def init_db(bind: Engine = None) -> None:
    # Creates tables that don't exist; does not drop/alter
    from . import models  # noqa: F401  (register tables)
    SQLModel.metadata.create_all(bind or engine)
