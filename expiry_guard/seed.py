import logging
from datetime import date, timedelta

from expiry_guard.core.constants import (
    COLLECTION_CONSUMPTION,
    COLLECTION_INVENTORY,
    COLLECTION_NOTIFICATIONS,
    COLLECTION_PRODUCTS,
)

logger = logging.getLogger(__name__)

RESET_ORDER = (
    COLLECTION_NOTIFICATIONS,
    COLLECTION_CONSUMPTION,
    COLLECTION_INVENTORY,
    COLLECTION_PRODUCTS,
)

# (name, unit, [(quantity, days until expiry), ...])
SAMPLE_INVENTORY = [
    ("Leche", "litros", [(2, 3), (6, 12)]),
    ("Yogur", "unidades", [(10, 2)]),
    ("Queso", "g", [(250, -1)]),
    ("Manzanas", "kg", [(1.5, 9)]),
    ("Arroz", "kg", [(5, 180)]),
]


def reset_inventory(store) -> int:
    removed = 0
    with store.atomic() as unit:
        for collection in RESET_ORDER:
            for record in unit.all(collection):
                unit.delete(collection, record.id)
                removed += 1
    logger.info("Inventory cleared (%d record(s)).", removed)
    return removed


def seed_inventory(app, *, today=None) -> int:
    """Add the sample batches unless the store already has products."""
    today = today or date.today()
    with app.store.reading() as unit:
        if unit.all(COLLECTION_PRODUCTS):
            logger.info("Seed skipped: products already exist.")
            return 0

    added = 0
    for name, unit_name, batches in SAMPLE_INVENTORY:
        for quantity, days in batches:
            result = app.add_batch(
                {"name": name, "unit": unit_name},
                quantity,
                today + timedelta(days=days),
            )
            if not result.ok:
                raise RuntimeError("Seeding {} failed: {}".format(name, result.message))
            added += 1
    logger.info("Seeded %d batch(es).", added)
    return added


__all__ = ["SAMPLE_INVENTORY", "reset_inventory", "seed_inventory"]
