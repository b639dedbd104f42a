import logging
from datetime import date

from expiry_guard.core.constants import (
    COLLECTION_INVENTORY,
    COLLECTION_NOTIFICATIONS,
    COLLECTION_PRODUCTS,
    EXPIRING_SOON_DAYS,
)
from expiry_guard.core.dates import days_between, normalize_date
from expiry_guard.core.errors import DomainError, InventoryError
from expiry_guard.models.notification import Notification
from expiry_guard.schemas.inventory import NotificationRead
from expiry_guard.services.results import MutationResult, failure

logger = logging.getLogger(__name__)


def sync_notifications(unit, now=None):
    """Bring the notifications collection in line with the current batches.

    Runs inside the caller's unit of work. A batch expiring within the
    warning window gets one notification; notifications of batches that
    left the window or no longer exist are removed.
    """
    today = normalize_date(now) or date.today()
    product_names = {product.id: product.name for product in unit.all(COLLECTION_PRODUCTS)}
    existing = {
        notification.inventory_item_id: notification
        for notification in unit.all(COLLECTION_NOTIFICATIONS)
    }
    counts = {"created": 0, "updated": 0, "deleted": 0}
    live_batch_ids = set()

    for batch in unit.all(COLLECTION_INVENTORY):
        live_batch_ids.add(batch.id)
        product_name = product_names.get(batch.product_id)
        if product_name is None:
            continue
        days_left = days_between(today, batch.expiry_date)
        if days_left is None:
            continue

        current = existing.get(batch.id)
        if days_left <= EXPIRING_SOON_DAYS:
            if current is None:
                unit.put(
                    COLLECTION_NOTIFICATIONS,
                    Notification(
                        inventory_item_id=batch.id,
                        product_name=product_name,
                        quantity=batch.quantity,
                        expiry_date=normalize_date(batch.expiry_date),
                        days_until_expiry=days_left,
                        read=False,
                    ),
                )
                counts["created"] += 1
            elif current.days_until_expiry != days_left or current.quantity != batch.quantity:
                current.days_until_expiry = days_left
                current.quantity = batch.quantity
                counts["updated"] += 1
        elif current is not None:
            unit.delete(COLLECTION_NOTIFICATIONS, current.id)
            counts["deleted"] += 1

    for item_id, notification in existing.items():
        if item_id not in live_batch_ids:
            unit.delete(COLLECTION_NOTIFICATIONS, notification.id)
            counts["deleted"] += 1

    if any(counts.values()):
        logger.debug("Notifications synced: %s", counts)
    return counts


def refresh_notifications(store, now=None):
    with store.atomic() as unit:
        counts = sync_notifications(unit, now)
    logger.info(
        "Expiry recheck: %d created, %d updated, %d deleted.",
        counts["created"],
        counts["updated"],
        counts["deleted"],
    )
    return counts


def list_notifications(store):
    with store.reading() as unit:
        batch_ids = {batch.id for batch in unit.all(COLLECTION_INVENTORY)}
        notifications = unit.all(
            COLLECTION_NOTIFICATIONS,
            order_by=(Notification.expiry_date, Notification.created_at),
        )
    return [
        NotificationRead.model_validate(notification)
        for notification in notifications
        if notification.inventory_item_id in batch_ids
    ]


def unread_count(store) -> int:
    return sum(1 for notification in list_notifications(store) if not notification.read)


def mark_notification_read(store, notification_id):
    try:
        with store.atomic() as unit:
            notification = unit.get(COLLECTION_NOTIFICATIONS, notification_id)
            if notification is None:
                raise DomainError("Notification not found.", code="notification_not_found")
            notification.read = True
    except InventoryError as exc:
        return failure(logger, "mark notification read", exc)
    return MutationResult(ok=True, message="Notification marked as read.")


def clear_read_notifications(store):
    try:
        with store.atomic() as unit:
            read_items = unit.query(
                COLLECTION_NOTIFICATIONS, "read", lambda column: column.is_(True)
            )
            for notification in read_items:
                unit.delete(COLLECTION_NOTIFICATIONS, notification.id)
            removed = len(read_items)
    except InventoryError as exc:
        return failure(logger, "clear read notifications", exc)
    logger.info("Cleared %d read notification(s).", removed)
    return MutationResult(ok=True, message="Cleared {} read notification(s).".format(removed))


__all__ = [
    "clear_read_notifications",
    "list_notifications",
    "mark_notification_read",
    "refresh_notifications",
    "sync_notifications",
    "unread_count",
]
