"""
Defines the declarative base shared by every ORM model.

Identifiers are opaque strings generated in Python so the same schema works on
SQLite (the default single-node store) and PostgreSQL alike. Timestamps are
stored timezone-aware and filled in by the application, never by the database,
so ordering is stable across dialects.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def generate_id() -> str:
    """Return a fresh opaque identifier for a Folder or FileRecord row."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Return the current UTC time."""
    return datetime.now(timezone.utc)
