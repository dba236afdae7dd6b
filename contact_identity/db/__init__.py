"""Contact database access."""

from .client import close_db, get_db_session, get_session_factory, init_db, ping_db

__all__ = [
    "init_db",
    "close_db",
    "get_db_session",
    "get_session_factory",
    "ping_db",
]
