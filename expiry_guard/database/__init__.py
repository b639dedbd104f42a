from expiry_guard.database.base import Base
from expiry_guard.database.engine import create_store_engine, engine, ensure_sqlite_schema
from expiry_guard.database.session import SessionLocal, make_session_factory

__all__ = [
    "Base",
    "SessionLocal",
    "create_store_engine",
    "engine",
    "ensure_sqlite_schema",
    "make_session_factory",
]
