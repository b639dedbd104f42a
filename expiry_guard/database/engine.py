import logging
import sqlite3

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.pool import StaticPool

from expiry_guard.config import Settings, get_settings


app_settings: Settings = get_settings()
logger = logging.getLogger(__name__)

_SQLITE_BUSY_TIMEOUT_SECONDS = 30
_SQLITE_BUSY_TIMEOUT_MS = _SQLITE_BUSY_TIMEOUT_SECONDS * 1000


def _casefold(value):
    return value.casefold() if isinstance(value, str) else value


def _is_sqlite_memory(url) -> bool:
    sqlite_db = url.database
    if sqlite_db in (None, "", ":memory:"):
        return True
    return url.query.get("mode") == "memory"


def create_store_engine(database_url: str, *, echo: bool = False):
    db_url = make_url(database_url)
    is_sqlite = db_url.get_backend_name() == "sqlite"
    is_sqlite_memory = is_sqlite and _is_sqlite_memory(db_url)

    connect_args = {}
    engine_kwargs: dict[str, object] = dict(pool_pre_ping=True, echo=echo)
    if is_sqlite:
        connect_args = {"check_same_thread": False, "timeout": _SQLITE_BUSY_TIMEOUT_SECONDS}
        if is_sqlite_memory:
            engine_kwargs.update(poolclass=StaticPool)

    store_engine = create_engine(
        database_url,
        connect_args=connect_args,
        **engine_kwargs,
    )

    if is_sqlite:
        @event.listens_for(store_engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, _connection_record):
            # SQLite lower() only folds ASCII; product names are matched with this instead
            dbapi_connection.create_function("casefold", 1, _casefold, deterministic=True)
            cursor = dbapi_connection.cursor()
            try:
                cursor.execute(f"PRAGMA busy_timeout={_SQLITE_BUSY_TIMEOUT_MS}")
                if not is_sqlite_memory:
                    try:
                        cursor.execute("PRAGMA journal_mode=WAL")
                        cursor.execute("PRAGMA synchronous=NORMAL")
                    except sqlite3.DatabaseError:
                        pass
            finally:
                cursor.close()

    return store_engine


engine = create_store_engine(app_settings.DATABASE_URL, echo=app_settings.DATABASE_ECHO)


# Columns introduced after the first schema revision. Older databases get
# them added in place instead of being cleared.
_SQLITE_COLUMN_DEFAULTS = {
    "products": {
        "unit": "TEXT NOT NULL DEFAULT 'unidades'",
        "created_at": "DATETIME NOT NULL DEFAULT '1970-01-01 00:00:00'",
    },
    "inventory": {
        "unit": "TEXT NOT NULL DEFAULT 'unidades'",
        "created_at": "DATETIME NOT NULL DEFAULT '1970-01-01 00:00:00'",
    },
    "consumption_history": {
        "product_name": "TEXT NOT NULL DEFAULT ''",
        "unit": "TEXT NOT NULL DEFAULT 'unidades'",
    },
}

_SQLITE_POST_ADD_UPDATES = {
    ("products", "created_at"): (
        "UPDATE products SET created_at = CURRENT_TIMESTAMP "
        "WHERE created_at = '1970-01-01 00:00:00'"
    ),
    ("inventory", "created_at"): (
        "UPDATE inventory SET created_at = CURRENT_TIMESTAMP "
        "WHERE created_at = '1970-01-01 00:00:00'"
    ),
    ("inventory", "unit"): (
        "UPDATE inventory SET unit = "
        "(SELECT p.unit FROM products p WHERE p.id = inventory.product_id) "
        "WHERE EXISTS (SELECT 1 FROM products p WHERE p.id = inventory.product_id)"
    ),
    ("consumption_history", "product_name"): (
        "UPDATE consumption_history SET product_name = "
        "(SELECT p.name FROM products p WHERE p.id = consumption_history.product_id) "
        "WHERE EXISTS (SELECT 1 FROM products p WHERE p.id = consumption_history.product_id)"
    ),
    ("consumption_history", "unit"): (
        "UPDATE consumption_history SET unit = "
        "(SELECT p.unit FROM products p WHERE p.id = consumption_history.product_id) "
        "WHERE EXISTS (SELECT 1 FROM products p WHERE p.id = consumption_history.product_id)"
    ),
}


def _escape_sqlite_identifier(value: str) -> str:
    return value.replace('"', '""')


def _get_sqlite_columns(conn, table_name: str):
    escaped_table = _escape_sqlite_identifier(table_name)
    # noinspection SqlNoDataSourceInspection
    result = conn.exec_driver_sql(
        f'PRAGMA table_info("{escaped_table}")'
    ).mappings()
    return {row["name"] for row in result}


def ensure_sqlite_schema(bind=None):
    bind = bind if bind is not None else engine
    if bind.dialect.name != "sqlite":
        return []
    added_columns = []
    with bind.connect() as conn:
        with conn.begin():
            for table_name, columns in _SQLITE_COLUMN_DEFAULTS.items():
                existing = _get_sqlite_columns(conn, table_name)
                if not existing:
                    continue
                for column_name, ddl in columns.items():
                    if column_name in existing:
                        continue
                    escaped_table = _escape_sqlite_identifier(table_name)
                    escaped_column = _escape_sqlite_identifier(column_name)
                    # noinspection SqlNoDataSourceInspection
                    conn.exec_driver_sql(
                        f'ALTER TABLE "{escaped_table}" ADD COLUMN "{escaped_column}" {ddl}'
                    )
                    added_columns.append((table_name, column_name))
            # products first so dependent back-fills read the upgraded rows
            for table_name, column_name in sorted(
                added_columns, key=lambda item: item[0] != "products"
            ):
                update_stmt = _SQLITE_POST_ADD_UPDATES.get(
                    (table_name, column_name)
                )
                if update_stmt:
                    # noinspection SqlNoDataSourceInspection
                    conn.exec_driver_sql(update_stmt)
    for table_name, column_name in added_columns:
        logger.info("Upgraded schema: added %s.%s", table_name, column_name)
    return added_columns
