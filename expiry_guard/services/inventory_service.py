import logging
import math

from expiry_guard.core.constants import (
    COLLECTION_CONSUMPTION,
    COLLECTION_INVENTORY,
    COLLECTION_PRODUCTS,
)
from expiry_guard.core.errors import DomainError, InventoryError
from expiry_guard.models.consumption import ConsumptionRecord
from expiry_guard.models.inventory import InventoryBatch
from expiry_guard.schemas import validate_payload
from expiry_guard.schemas.inventory import BatchConsume, BatchCreate
from expiry_guard.services.notification_service import sync_notifications
from expiry_guard.services.product_service import (
    create_product,
    find_product_by_name,
    get_product_or_fail,
    utc_timestamp,
)
from expiry_guard.services.results import MutationResult, failure

logger = logging.getLogger(__name__)

_QUANTITY_TOLERANCE = 1e-9


def _format_quantity(value) -> str:
    return "{:g}".format(value)


def _resolve_product(unit, product_ref, created_at):
    if product_ref.id:
        return get_product_or_fail(unit, product_ref.id)
    existing = find_product_by_name(unit, product_ref.name)
    if existing is not None:
        # the stored unit wins over whatever the caller picked
        return existing
    return create_product(
        unit,
        name=product_ref.name,
        unit_name=product_ref.unit,
        created_at=created_at,
    )


def add_batch(store, product, quantity, expiry_date, *, now=None) -> MutationResult:
    try:
        payload = validate_payload(
            BatchCreate,
            product=product,
            quantity=quantity,
            expiry_date=expiry_date,
        )
        timestamp = utc_timestamp(now)
        with store.atomic() as unit:
            resolved = _resolve_product(unit, payload.product, timestamp)
            batch = InventoryBatch(
                product_id=resolved.id,
                quantity=payload.quantity,
                expiry_date=payload.expiry_date,
                unit=resolved.unit,
                created_at=timestamp,
            )
            unit.put(COLLECTION_INVENTORY, batch)
            sync_notifications(unit, now)
            product_id, product_name, batch_id = resolved.id, resolved.name, batch.id
    except InventoryError as exc:
        return failure(logger, "add batch", exc)

    logger.info(
        "Added batch %s: %s %s of %s expiring %s",
        batch_id,
        _format_quantity(payload.quantity),
        batch.unit,
        product_name,
        payload.expiry_date.isoformat(),
    )
    return MutationResult(
        ok=True,
        message="{} x {} has been added to your inventory.".format(
            _format_quantity(payload.quantity), product_name
        ),
        product_id=product_id,
        batch_id=batch_id,
    )


def consume_batch(store, batch_id, quantity, *, now=None) -> MutationResult:
    """Take ``quantity`` out of a batch and record it in the history.

    Consuming the whole batch deletes it; a batch is never left at zero.
    Asking for more than the batch holds is rejected and writes nothing.
    """
    try:
        payload = validate_payload(BatchConsume, batch_id=batch_id, quantity=quantity)
        with store.atomic() as unit:
            batch = unit.get(COLLECTION_INVENTORY, payload.batch_id)
            if batch is None:
                raise DomainError("Batch not found.", code="batch_not_found")
            product = get_product_or_fail(unit, batch.product_id)

            if payload.quantity > batch.quantity and not math.isclose(
                payload.quantity, batch.quantity, abs_tol=_QUANTITY_TOLERANCE
            ):
                raise DomainError(
                    "Cannot consume {} {}; only {} {} left.".format(
                        _format_quantity(payload.quantity),
                        batch.unit,
                        _format_quantity(batch.quantity),
                        batch.unit,
                    ),
                    code="over_consumption",
                )

            # within tolerance of the whole batch counts as exactly the whole batch
            consumed = min(payload.quantity, batch.quantity)
            unit.put(
                COLLECTION_CONSUMPTION,
                ConsumptionRecord(
                    product_id=product.id,
                    product_name=product.name,
                    quantity=consumed,
                    unit=batch.unit,
                    consumed_at=utc_timestamp(now),
                ),
            )

            remaining = batch.quantity - consumed
            depleted = remaining <= _QUANTITY_TOLERANCE
            if depleted:
                unit.delete(COLLECTION_INVENTORY, batch.id)
            else:
                batch.quantity = remaining
            sync_notifications(unit, now)
            product_id, product_name, batch_unit = product.id, product.name, batch.unit
    except InventoryError as exc:
        return failure(logger, "consume batch", exc)

    if depleted:
        logger.info("Batch %s of %s fully consumed and removed.", payload.batch_id, product_name)
    else:
        logger.info(
            "Consumed %s from batch %s of %s; %s left.",
            _format_quantity(consumed),
            payload.batch_id,
            product_name,
            _format_quantity(remaining),
        )
    return MutationResult(
        ok=True,
        message="{} {} of {} consumed.".format(
            _format_quantity(consumed), batch_unit, product_name
        ),
        product_id=product_id,
        batch_id=payload.batch_id,
    )


def delete_batch(store, batch_id, *, now=None) -> MutationResult:
    try:
        with store.atomic() as unit:
            batch = unit.get(COLLECTION_INVENTORY, batch_id)
            if batch is None:
                raise DomainError("Batch not found; nothing was deleted.", code="batch_not_found")
            product_id = batch.product_id
            product = unit.get(COLLECTION_PRODUCTS, product_id)
            product_name = product.name if product is not None else "product"
            unit.delete(COLLECTION_INVENTORY, batch.id)
            sync_notifications(unit, now)
    except InventoryError as exc:
        return failure(logger, "delete batch", exc)

    logger.info("Deleted batch %s of %s.", batch_id, product_name)
    return MutationResult(
        ok=True,
        message="The batch of {} has been deleted.".format(product_name),
        product_id=product_id,
        batch_id=batch_id,
    )


__all__ = ["add_batch", "consume_batch", "delete_batch"]
