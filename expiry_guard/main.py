import logging
from typing import Optional

from expiry_guard.config import Settings, get_settings
from expiry_guard.core.aggregation import (
    build_product_views,
    compute_report_stats,
    filter_and_sort,
)
from expiry_guard.core.errors import StoreError
from expiry_guard.core.logging import setup_logging
from expiry_guard.database.engine import create_store_engine
from expiry_guard.database.schema import ensure_schema
from expiry_guard.database.session import make_session_factory
from expiry_guard.database.store import EntityStore
from expiry_guard.schemas.inventory import ConsumptionRead
from expiry_guard.services import inventory_service, notification_service, product_service

logger = logging.getLogger(__name__)


class InventoryApp:
    """What the dashboard talks to.

    Mutations return a ``MutationResult`` for toast-style feedback; the
    query methods read a fresh snapshot and run the pure aggregation code.
    Use :meth:`subscribe` to get told when a mutation committed.
    """

    def __init__(self, store: EntityStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()

    # ---------- mutations ----------
    def add_batch(self, product, quantity, expiry_date, *, now=None):
        if isinstance(product, str):
            product = {"name": product, "unit": self.settings.DEFAULT_UNIT}
        return inventory_service.add_batch(self.store, product, quantity, expiry_date, now=now)

    def consume_batch(self, batch_id, quantity, *, now=None):
        return inventory_service.consume_batch(self.store, batch_id, quantity, now=now)

    def delete_batch(self, batch_id, *, now=None):
        return inventory_service.delete_batch(self.store, batch_id, now=now)

    def update_product(self, product_id, new_name, new_unit, *, now=None):
        return product_service.update_product(self.store, product_id, new_name, new_unit, now=now)

    def delete_product(self, product_id):
        return product_service.delete_product(self.store, product_id)

    # ---------- queries ----------
    def product_views(self, search_term="", sort_config=None):
        snapshot = self.store.snapshot()
        views = build_product_views(snapshot.products, snapshot.batches)
        return filter_and_sort(views, search_term, sort_config)

    def report_stats(self, now=None):
        snapshot = self.store.snapshot()
        views = build_product_views(snapshot.products, snapshot.batches)
        return compute_report_stats(views, snapshot.consumption_records, now)

    def list_products(self):
        return product_service.list_products(self.store)

    def consumption_history(self):
        records = self.store.snapshot().consumption_records
        return [ConsumptionRead.model_validate(record) for record in records]

    # ---------- notifications ----------
    def notifications(self):
        return notification_service.list_notifications(self.store)

    def unread_notifications(self) -> int:
        return notification_service.unread_count(self.store)

    def refresh_notifications(self, now=None):
        try:
            return notification_service.refresh_notifications(self.store, now)
        except StoreError:
            logger.exception("Expiry recheck failed")
            return None

    def mark_notification_read(self, notification_id):
        return notification_service.mark_notification_read(self.store, notification_id)

    def clear_read_notifications(self):
        return notification_service.clear_read_notifications(self.store)

    # ---------- change feed ----------
    def subscribe(self, collection, callback):
        return self.store.subscribe(collection, callback)


def create_app(settings: Optional[Settings] = None, *, configure_logging: bool = True) -> InventoryApp:
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(settings)

    store_engine = create_store_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
    upgraded = ensure_schema(store_engine)
    if upgraded:
        logger.info("Database schema upgraded (%d column(s) added).", len(upgraded))

    app = InventoryApp(EntityStore(make_session_factory(store_engine)), settings)
    app.refresh_notifications()
    logger.info("%s ready (%s).", settings.APP_NAME, settings.ENVIRONMENT)
    return app


__all__ = ["InventoryApp", "create_app"]
