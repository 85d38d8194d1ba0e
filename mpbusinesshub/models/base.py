"""
SQLAlchemy declarative base shared by all models.
"""

from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


def utc_now() -> datetime:
    """Return current UTC time as a naive datetime (columns store UTC without tz)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all MPBusinessHub SQLAlchemy models."""

    pass
