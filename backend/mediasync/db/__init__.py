"""Database package for MediaSync."""

from mediasync.db.base import Base
from mediasync.db.session import async_session_maker, engine, init_db

__all__ = [
    "Base",
    "async_session_maker",
    "engine",
    "init_db",
]
