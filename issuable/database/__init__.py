"""Database configuration, models, and session management."""

from issuable.database.config import engine, Base, get_db, SyncSessionLocal
from issuable.database import models

__all__ = ["engine", "Base", "get_db", "SyncSessionLocal", "models"]
