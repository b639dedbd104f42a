from expiry_guard.database.base import Base
from expiry_guard.database.engine import engine, ensure_sqlite_schema
from expiry_guard.models import import_all_models


def ensure_schema(bind=None):
    bind = bind if bind is not None else engine
    import_all_models()
    Base.metadata.create_all(bind=bind)
    return ensure_sqlite_schema(bind)
