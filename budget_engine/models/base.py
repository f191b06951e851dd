"""Declarative base shared by all models."""

from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


def utcnow() -> datetime:
    """Naive UTC timestamp for DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
