"""Database module.

Provides database session management and engine configuration.
"""

from flowengine.db.session import async_session, close_db, engine, init_db

__all__ = [
    "async_session",
    "close_db",
    "engine",
    "init_db",
]
