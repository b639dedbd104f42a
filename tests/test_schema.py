import unittest
from datetime import date

from expiry_guard.config import Settings
from expiry_guard.database.engine import create_store_engine
from expiry_guard.database.schema import ensure_schema
from expiry_guard.database.session import make_session_factory
from expiry_guard.database.store import EntityStore
from expiry_guard.main import InventoryApp

LEGACY_TABLES = [
    "CREATE TABLE products (id VARCHAR(36) PRIMARY KEY, name VARCHAR NOT NULL, unit VARCHAR(16) NOT NULL)",
    "CREATE TABLE inventory (id VARCHAR(36) PRIMARY KEY, product_id VARCHAR(36) NOT NULL, "
    "quantity FLOAT NOT NULL, expiry_date DATE NOT NULL)",
    "CREATE TABLE consumption_history (id VARCHAR(36) PRIMARY KEY, product_id VARCHAR(36) NOT NULL, "
    "quantity FLOAT NOT NULL, consumed_at DATETIME NOT NULL)",
]

LEGACY_ROWS = [
    "INSERT INTO products (id, name, unit) VALUES ('p1', 'Leche', 'litros')",
    "INSERT INTO inventory (id, product_id, quantity, expiry_date) VALUES ('b1', 'p1', 2.0, '2026-03-12')",
    "INSERT INTO consumption_history (id, product_id, quantity, consumed_at) "
    "VALUES ('c1', 'p1', 1.0, '2026-03-01 08:00:00.000000')",
]


def make_legacy_engine():
    engine = create_store_engine("sqlite:///:memory:")
    with engine.begin() as conn:
        for statement in LEGACY_TABLES + LEGACY_ROWS:
            conn.exec_driver_sql(statement)
    return engine


class EnsureSchemaTest(unittest.TestCase):
    def test_fresh_database_needs_no_upgrade(self):
        engine = create_store_engine("sqlite:///:memory:")
        self.assertEqual(ensure_schema(engine), [])
        self.assertEqual(ensure_schema(engine), [])

    def test_old_tables_gain_missing_columns(self):
        engine = make_legacy_engine()
        with self.assertLogs("expiry_guard.database.engine", level="INFO"):
            added = ensure_schema(engine)
        self.assertEqual(
            sorted(added),
            [
                ("consumption_history", "product_name"),
                ("consumption_history", "unit"),
                ("inventory", "created_at"),
                ("inventory", "unit"),
                ("products", "created_at"),
            ],
        )
        self.assertEqual(ensure_schema(engine), [])

    def test_existing_rows_survive_and_are_back_filled(self):
        engine = make_legacy_engine()
        ensure_schema(engine)
        app = InventoryApp(EntityStore(make_session_factory(engine)), Settings(_env_file=None))

        snapshot = app.store.snapshot()
        self.assertEqual([p.name for p in snapshot.products], ["Leche"])
        self.assertEqual(snapshot.batches[0].unit, "litros")
        record = snapshot.consumption_records[0]
        self.assertEqual((record.product_name, record.unit), ("Leche", "litros"))

        views = app.product_views()
        self.assertEqual(len(views), 1)
        self.assertEqual(views[0].total_quantity, 2.0)
        self.assertEqual(views[0].next_expiry_date, date(2026, 3, 12))


if __name__ == "__main__":
    unittest.main()
