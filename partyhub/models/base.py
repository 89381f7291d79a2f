"""Base declarative class for SQLAlchemy models."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import String
from sqlalchemy.orm import DeclarativeBase

ID_TYPE = String(36)


def new_id() -> str:
    """Return a new string primary key."""

    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""

    pass
