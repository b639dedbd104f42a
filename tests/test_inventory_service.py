import unittest
from datetime import date, datetime, timedelta, timezone

from expiry_guard.config import Settings
from expiry_guard.core.constants import STATUS_EXPIRING_SOON
from expiry_guard.core.freshness import classify
from expiry_guard.database.engine import create_store_engine
from expiry_guard.database.schema import ensure_schema
from expiry_guard.database.session import make_session_factory
from expiry_guard.database.store import EntityStore
from expiry_guard.main import InventoryApp

TODAY = date(2026, 3, 10)
NOW = datetime(2026, 3, 10, 9, 30)


def make_app():
    engine = create_store_engine("sqlite:///:memory:")
    ensure_schema(engine)
    store = EntityStore(make_session_factory(engine))
    return InventoryApp(store, Settings(_env_file=None))


class AddBatchTest(unittest.TestCase):
    def setUp(self):
        self.app = make_app()

    def test_creates_product_on_first_use(self):
        result = self.app.add_batch(
            {"name": "Leche", "unit": "litros"}, 2, TODAY + timedelta(days=10), now=NOW
        )
        self.assertTrue(result.ok, result.message)
        self.assertIn("Leche", result.message)

        products = self.app.list_products()
        self.assertEqual(len(products), 1)
        self.assertEqual(products[0].id, result.product_id)
        self.assertEqual(products[0].unit, "litros")
        self.assertEqual(products[0].batch_count, 1)

    def test_reuses_product_by_name_ignoring_case_and_keeps_its_unit(self):
        first = self.app.add_batch({"name": "Leche", "unit": "litros"}, 2, TODAY, now=NOW)
        second = self.app.add_batch({"name": "  LECHE ", "unit": "ml"}, 500, TODAY, now=NOW)
        self.assertTrue(second.ok, second.message)
        self.assertEqual(first.product_id, second.product_id)
        self.assertEqual(len(self.app.list_products()), 1)

        batches = self.app.store.snapshot().batches
        self.assertEqual({batch.unit for batch in batches}, {"litros"})

    def test_case_insensitive_match_handles_accents(self):
        first = self.app.add_batch({"name": "Ñame", "unit": "kg"}, 1, TODAY, now=NOW)
        second = self.app.add_batch({"name": "ñAME", "unit": "kg"}, 1, TODAY, now=NOW)
        self.assertEqual(first.product_id, second.product_id)

    def test_uses_explicit_product_id(self):
        first = self.app.add_batch({"name": "Queso", "unit": "g"}, 250, TODAY, now=NOW)
        result = self.app.add_batch(
            {"id": first.product_id, "name": "Queso", "unit": "kg"}, 100, TODAY, now=NOW
        )
        self.assertTrue(result.ok, result.message)
        self.assertEqual(result.product_id, first.product_id)

    def test_unknown_product_id_rejected(self):
        result = self.app.add_batch({"id": "missing", "name": "Queso"}, 1, TODAY, now=NOW)
        self.assertFalse(result.ok)
        self.assertEqual(result.error, "product_not_found")
        self.assertEqual(self.app.store.snapshot().batches, [])

    def test_invalid_input_rejected_before_writing(self):
        cases = [
            ({"name": "Leche", "unit": "litros"}, 0),
            ({"name": "Leche", "unit": "litros"}, -3),
            ({"name": "L", "unit": "litros"}, 1),
            ({"name": "Leche", "unit": "barrels"}, 1),
        ]
        for product, quantity in cases:
            with self.subTest(product=product, quantity=quantity):
                result = self.app.add_batch(product, quantity, TODAY, now=NOW)
                self.assertFalse(result.ok)
                self.assertEqual(result.error, "validation_error")
        snapshot = self.app.store.snapshot()
        self.assertEqual(snapshot.products, [])
        self.assertEqual(snapshot.batches, [])

    def test_plain_name_uses_default_unit(self):
        result = self.app.add_batch("Huevos", 12, TODAY, now=NOW)
        self.assertTrue(result.ok, result.message)
        self.assertEqual(self.app.list_products()[0].unit, "unidades")


class ConsumeBatchTest(unittest.TestCase):
    def setUp(self):
        self.app = make_app()
        added = self.app.add_batch(
            {"name": "Yogur", "unit": "unidades"}, 10, TODAY + timedelta(days=3), now=NOW
        )
        self.product_id = added.product_id
        self.batch_id = added.batch_id

    def test_partial_consumption_updates_quantity(self):
        result = self.app.consume_batch(self.batch_id, 4, now=NOW)
        self.assertTrue(result.ok, result.message)

        snapshot = self.app.store.snapshot()
        self.assertEqual(len(snapshot.batches), 1)
        self.assertEqual(snapshot.batches[0].quantity, 6)
        self.assertEqual(len(snapshot.consumption_records), 1)
        record = snapshot.consumption_records[0]
        self.assertEqual(record.quantity, 4)
        self.assertEqual(record.product_name, "Yogur")
        self.assertEqual(record.unit, "unidades")

    def test_full_consumption_deletes_batch(self):
        result = self.app.consume_batch(self.batch_id, 10, now=NOW)
        self.assertTrue(result.ok, result.message)

        snapshot = self.app.store.snapshot()
        self.assertEqual(snapshot.batches, [])
        self.assertEqual([record.quantity for record in snapshot.consumption_records], [10])

    def test_fractional_consumption_never_leaves_zero_batch(self):
        added = self.app.add_batch({"name": "Harina", "unit": "kg"}, 0.3, TODAY, now=NOW)
        self.assertTrue(self.app.consume_batch(added.batch_id, 0.1, now=NOW).ok)
        self.assertTrue(self.app.consume_batch(added.batch_id, 0.2, now=NOW).ok)
        batch_ids = [batch.id for batch in self.app.store.snapshot().batches]
        self.assertNotIn(added.batch_id, batch_ids)

    def test_request_within_tolerance_records_what_the_batch_held(self):
        result = self.app.consume_batch(self.batch_id, 10 + 5e-10, now=NOW)
        self.assertTrue(result.ok, result.message)

        snapshot = self.app.store.snapshot()
        self.assertEqual(snapshot.batches, [])
        self.assertEqual([record.quantity for record in snapshot.consumption_records], [10])

    def test_over_consumption_writes_nothing(self):
        result = self.app.consume_batch(self.batch_id, 11, now=NOW)
        self.assertFalse(result.ok)
        self.assertEqual(result.error, "over_consumption")

        snapshot = self.app.store.snapshot()
        self.assertEqual(snapshot.batches[0].quantity, 10)
        self.assertEqual(snapshot.consumption_records, [])

    def test_missing_batch(self):
        result = self.app.consume_batch("missing", 1, now=NOW)
        self.assertFalse(result.ok)
        self.assertEqual(result.error, "batch_not_found")

    def test_batch_of_missing_product(self):
        with self.app.store.atomic() as unit:
            unit.get("inventory", self.batch_id).product_id = "ghost"
        result = self.app.consume_batch(self.batch_id, 1, now=NOW)
        self.assertFalse(result.ok)
        self.assertEqual(result.error, "product_not_found")
        self.assertEqual(self.app.store.snapshot().consumption_records, [])

    def test_non_positive_quantity_rejected(self):
        result = self.app.consume_batch(self.batch_id, 0, now=NOW)
        self.assertFalse(result.ok)
        self.assertEqual(result.error, "validation_error")


class DeleteBatchTest(unittest.TestCase):
    def setUp(self):
        self.app = make_app()

    def test_deletes_batch_and_keeps_history(self):
        added = self.app.add_batch({"name": "Leche", "unit": "litros"}, 3, TODAY, now=NOW)
        self.app.consume_batch(added.batch_id, 1, now=NOW)

        result = self.app.delete_batch(added.batch_id, now=NOW)
        self.assertTrue(result.ok, result.message)
        snapshot = self.app.store.snapshot()
        self.assertEqual(snapshot.batches, [])
        self.assertEqual(len(snapshot.consumption_records), 1)
        self.assertEqual(len(snapshot.products), 1)

    def test_missing_batch_is_a_notice(self):
        result = self.app.delete_batch("missing", now=NOW)
        self.assertFalse(result.ok)
        self.assertEqual(result.error, "batch_not_found")


class EndToEndTest(unittest.TestCase):
    def test_yogurt_lifecycle(self):
        app = make_app()
        added = app.add_batch(
            {"name": "Yogurt", "unit": "unidades"}, 10, TODAY + timedelta(days=3), now=NOW
        )
        self.assertTrue(added.ok, added.message)

        views = app.product_views()
        self.assertEqual(len(views), 1)
        self.assertEqual(views[0].total_quantity, 10)
        self.assertEqual(views[0].status(TODAY), STATUS_EXPIRING_SOON)
        self.assertEqual(classify(views[0].next_expiry_date, TODAY), STATUS_EXPIRING_SOON)

        consumed = app.consume_batch(added.batch_id, 10, now=NOW)
        self.assertTrue(consumed.ok, consumed.message)

        self.assertEqual(app.product_views(), [])
        history = app.consumption_history()
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].quantity, 10)
        self.assertEqual(history[0].product_id, added.product_id)

        stats = app.report_stats(TODAY)
        self.assertEqual(stats.total_items, 0)
        self.assertEqual(stats.most_rotated_product_id, added.product_id)

    def test_consumed_this_evening_counts_as_rotated(self):
        app = make_app()
        evening = datetime(2026, 3, 10, 21, 0, tzinfo=timezone(timedelta(hours=-5)))
        added = app.add_batch(
            {"name": "Yogurt", "unit": "unidades"}, 10, TODAY + timedelta(days=3), now=evening
        )
        self.assertTrue(app.consume_batch(added.batch_id, 4, now=evening).ok)

        stats = app.report_stats(evening)
        self.assertEqual(stats.most_rotated_product_id, added.product_id)
        self.assertEqual(stats.most_rotated_quantity, 4)


if __name__ == "__main__":
    unittest.main()
