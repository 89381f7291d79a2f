"""Database engine factories."""
from __future__ import annotations

from functools import lru_cache

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from partyhub.core.config import get_settings
from partyhub.core.logger import get_logger

LOGGER = get_logger(__name__)


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, _connection_record) -> None:  # pragma: no cover - driver hook
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@lru_cache(maxsize=8)
def create_sync_engine(url: str | None = None, **kwargs) -> Engine:
    """Create (once per URL) a synchronous SQLAlchemy engine using configured defaults."""

    settings = get_settings()
    resolved_url = url or settings.database.sqlalchemy_url

    options = dict(kwargs)
    options.setdefault("echo", settings.sqlalchemy_echo)
    if not resolved_url.startswith("sqlite"):
        options.setdefault("pool_pre_ping", True)

    LOGGER.debug(
        "Creating SQLAlchemy engine",
        extra={"url": settings.database.masked_url if url is None else url.split("@")[-1]},
    )
    engine = create_engine(resolved_url, future=True, **options)
    if resolved_url.startswith("sqlite"):
        _enable_sqlite_foreign_keys(engine)
    return engine
