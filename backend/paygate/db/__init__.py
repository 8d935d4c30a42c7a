"""Database package: shared engine, session factory and row-store operations."""

from paygate.db.base import Base, bind_engine, close_db, create_tables, get_session_factory, init_db

__all__ = [
    "Base",
    "bind_engine",
    "close_db",
    "create_tables",
    "get_session_factory",
    "init_db",
]
