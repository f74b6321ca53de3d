"""Persistence layer: SQLAlchemy models, connection manager and repositories."""

from cadence.db.database import DatabaseManager
from cadence.db.models import Base

__all__ = ["Base", "DatabaseManager"]
