import logging
from datetime import datetime, timezone

from sqlalchemy import func

from expiry_guard.core.constants import (
    COLLECTION_CONSUMPTION,
    COLLECTION_INVENTORY,
    COLLECTION_NOTIFICATIONS,
    COLLECTION_PRODUCTS,
)
from expiry_guard.core.errors import DomainError, InventoryError
from expiry_guard.models.product import Product
from expiry_guard.schemas import validate_payload
from expiry_guard.schemas.product import ProductRead, ProductUpdate
from expiry_guard.services.notification_service import sync_notifications
from expiry_guard.services.results import MutationResult, failure

logger = logging.getLogger(__name__)


def utc_timestamp(value: datetime | None = None) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def name_matches(dialect_name: str, column, name: str):
    """Case-insensitive equality on a name column.

    SQLite uses the ``casefold`` function the engine registers on each
    connection; other backends fall back to ``lower``.
    """
    if dialect_name == "sqlite":
        return func.casefold(column) == name.strip().casefold()
    return func.lower(column) == name.strip().lower()


def find_product_by_name(unit, name: str):
    dialect_name = unit.session.get_bind().dialect.name
    matches = unit.query(
        COLLECTION_PRODUCTS,
        "name",
        lambda column: name_matches(dialect_name, column, name),
        order_by=Product.created_at,
    )
    return matches[0] if matches else None


def batches_of(unit, product_id) -> list:
    return unit.query(COLLECTION_INVENTORY, "product_id", lambda column: column == product_id)


def consumption_of(unit, product_id) -> list:
    return unit.query(COLLECTION_CONSUMPTION, "product_id", lambda column: column == product_id)


def get_product_or_fail(unit, product_id):
    product = unit.get(COLLECTION_PRODUCTS, product_id)
    if product is None:
        raise DomainError("Product not found.", code="product_not_found")
    return product


def create_product(unit, *, name: str, unit_name: str, created_at: datetime | None = None):
    product = Product(name=name, unit=unit_name, created_at=utc_timestamp(created_at))
    unit.put(COLLECTION_PRODUCTS, product)
    logger.info("Created product %s (%s)", product.name, product.id)
    return product


def list_products(store) -> list[ProductRead]:
    with store.reading() as unit:
        products = unit.all(COLLECTION_PRODUCTS)
        batch_counts = {}
        for batch in unit.all(COLLECTION_INVENTORY):
            batch_counts[batch.product_id] = batch_counts.get(batch.product_id, 0) + 1
    products.sort(key=lambda product: product.name.casefold())
    items = []
    for product in products:
        item = ProductRead.model_validate(product)
        item.batch_count = batch_counts.get(product.id, 0)
        items.append(item)
    return items


def update_product(store, product_id, new_name, new_unit, *, now=None) -> MutationResult:
    """Rename / re-unit a product and cascade into its batches and history.

    Batches get the new unit; consumption records and notifications get the
    new name (and unit). Quantities and dates are left alone. Everything is
    written in one transaction.
    """
    try:
        payload = validate_payload(ProductUpdate, product_id=product_id, name=new_name, unit=new_unit)
        with store.atomic() as unit:
            product = get_product_or_fail(unit, payload.product_id)
            clash = find_product_by_name(unit, payload.name)
            if clash is not None and clash.id != product.id:
                raise DomainError(
                    "Another product is already named '{}'.".format(clash.name),
                    code="duplicate_product_name",
                )

            product.name = payload.name
            product.unit = payload.unit

            batches = batches_of(unit, product.id)
            for batch in batches:
                batch.unit = payload.unit

            records = consumption_of(unit, product.id)
            for record in records:
                record.product_name = payload.name
                record.unit = payload.unit

            batch_ids = {batch.id for batch in batches}
            for notification in unit.query(
                COLLECTION_NOTIFICATIONS,
                "inventory_item_id",
                lambda column: column.in_(sorted(batch_ids)),
            ):
                notification.product_name = payload.name

            sync_notifications(unit, now)
    except InventoryError as exc:
        return failure(logger, "update product", exc)

    logger.info(
        "Updated product %s: %d batch(es), %d history record(s) cascaded.",
        payload.product_id,
        len(batches),
        len(records),
    )
    return MutationResult(
        ok=True,
        message="{} has been updated.".format(payload.name),
        product_id=payload.product_id,
    )


def delete_product(store, product_id) -> MutationResult:
    try:
        with store.atomic() as unit:
            product = get_product_or_fail(unit, product_id)
            active = batches_of(unit, product.id)
            if active:
                raise DomainError(
                    "{} still has {} active batch(es); consume or delete them first.".format(
                        product.name, len(active)
                    ),
                    code="product_has_inventory",
                )
            name = product.name
            unit.delete(COLLECTION_PRODUCTS, product.id)
    except InventoryError as exc:
        return failure(logger, "delete product", exc)

    logger.info("Deleted product %s (%s); history kept.", name, product_id)
    return MutationResult(
        ok=True,
        message="{} has been removed.".format(name),
        product_id=product_id,
    )


__all__ = [
    "batches_of",
    "consumption_of",
    "create_product",
    "delete_product",
    "find_product_by_name",
    "get_product_or_fail",
    "list_products",
    "name_matches",
    "update_product",
    "utc_timestamp",
]
