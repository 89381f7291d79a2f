"""SQLAlchemy session helpers."""
from __future__ import annotations

from sqlalchemy.orm import sessionmaker

from .engine import create_sync_engine


def get_sessionmaker(url: str | None = None) -> sessionmaker:
    """Return a ``sessionmaker`` bound to a shared engine.

    Loaded objects stay usable after commit; the party service hands them
    back to callers once its transaction has ended.
    """

    engine = create_sync_engine(url)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
