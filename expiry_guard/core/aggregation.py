"""Pure rollups over snapshots of products, batches and consumption history.

Nothing here touches the database. Callers pass in whatever they read from
the store (ORM rows or any objects with the same attributes) and get plain
dataclasses back.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from expiry_guard.core.constants import (
    FRESHNESS_STATUSES,
    ROTATION_WINDOW_DAYS,
    SORT_ASCENDING,
    SORT_DESCENDING,
    SORT_KEYS,
    STATUS_EXPIRED,
    STATUS_EXPIRING_SOON,
)
from expiry_guard.core.dates import (
    date_in_frame,
    days_between,
    normalize_date,
    reference_now,
    start_of_month,
)
from expiry_guard.core.freshness import classify_batches, classify_days

logger = logging.getLogger(__name__)


@dataclass
class ProductWithInventory:
    product: object
    inventory: list = field(default_factory=list)
    total_quantity: float = 0

    @property
    def id(self):
        return self.product.id

    @property
    def name(self) -> str:
        return self.product.name or ""

    @property
    def unit(self):
        return self.product.unit

    @property
    def next_batch(self):
        return self.inventory[0] if self.inventory else None

    @property
    def next_expiry_date(self) -> Optional[date]:
        batch = self.next_batch
        return normalize_date(batch.expiry_date) if batch is not None else None

    def status(self, now=None) -> str:
        return classify_batches(self.inventory, now)


@dataclass(frozen=True)
class SortConfig:
    key: str = "next_expiry_date"
    direction: str = SORT_ASCENDING

    def __post_init__(self):
        if self.key not in SORT_KEYS:
            raise ValueError("Unknown sort key: {}".format(self.key))
        if self.direction not in (SORT_ASCENDING, SORT_DESCENDING):
            raise ValueError("Unknown sort direction: {}".format(self.direction))


DEFAULT_SORT = SortConfig()


@dataclass
class ReportStats:
    total_items: float = 0
    expiring_soon_count: float = 0
    expired_count: float = 0
    expired_this_month_count: float = 0
    product_with_most_stock: Optional[ProductWithInventory] = None
    product_with_least_stock: Optional[ProductWithInventory] = None
    most_rotated_product_id: Optional[str] = None
    most_rotated_product_name: Optional[str] = None
    most_rotated_quantity: float = 0
    status_counts: dict = field(
        default_factory=lambda: {status: 0 for status in FRESHNESS_STATUSES}
    )


def _usable_batch(batch) -> bool:
    quantity = getattr(batch, "quantity", None)
    if not isinstance(quantity, (int, float)) or isinstance(quantity, bool):
        return False
    return normalize_date(getattr(batch, "expiry_date", None)) is not None


def build_product_views(products, batches):
    inventory_by_product = {}
    for batch in batches:
        if not _usable_batch(batch):
            logger.debug("Skipping malformed batch %r", getattr(batch, "id", None))
            continue
        inventory_by_product.setdefault(batch.product_id, []).append(batch)

    known_ids = {product.id for product in products}
    orphaned = [pid for pid in inventory_by_product if pid not in known_ids]
    if orphaned:
        logger.debug("Skipping batches of unknown product(s): %s", orphaned)

    views = []
    for product in products:
        items = sorted(
            inventory_by_product.get(product.id, []),
            key=lambda item: normalize_date(item.expiry_date),
        )
        total_quantity = sum(item.quantity for item in items)
        if total_quantity <= 0:
            continue
        views.append(
            ProductWithInventory(product=product, inventory=items, total_quantity=total_quantity)
        )
    return views


def _sort_value(view, key):
    if key == "name":
        return view.name.casefold()
    if key == "total_quantity":
        return view.total_quantity
    return view.next_expiry_date


def filter_and_sort(views, search_term="", sort_config=None):
    sort_config = sort_config or DEFAULT_SORT
    term = (search_term or "").strip().casefold()
    filtered = [view for view in views if term in view.name.casefold()]

    # views without batches have no next expiry; they always go last
    defined = []
    undefined = []
    for view in filtered:
        if _sort_value(view, sort_config.key) is None:
            undefined.append(view)
        else:
            defined.append(view)

    ordered = sorted(
        defined,
        key=lambda view: _sort_value(view, sort_config.key),
        reverse=sort_config.direction == SORT_DESCENDING,
    )
    return ordered + undefined


def _most_rotated(consumption_records, now):
    today = normalize_date(now)
    totals = {}
    names = {}
    for record in consumption_records:
        consumed_on = date_in_frame(getattr(record, "consumed_at", None), now)
        age_days = days_between(consumed_on, today)
        if age_days is None or age_days < 0 or age_days > ROTATION_WINDOW_DAYS:
            continue
        quantity = record.quantity or 0
        totals[record.product_id] = totals.get(record.product_id, 0) + quantity
        names[record.product_id] = record.product_name

    best_id = None
    for product_id, quantity in totals.items():
        # dict order is first-seen order, so strict ">" keeps the earliest on ties
        if best_id is None or quantity > totals[best_id]:
            best_id = product_id
    if best_id is None:
        return None, None, 0
    return best_id, names[best_id], totals[best_id]


def compute_report_stats(views, consumption_records=(), now=None):
    now = reference_now(now)
    today = normalize_date(now)
    month_start = start_of_month(today)
    stats = ReportStats()

    for view in views:
        stats.total_items += view.total_quantity

        if (
            stats.product_with_most_stock is None
            or view.total_quantity > stats.product_with_most_stock.total_quantity
        ):
            stats.product_with_most_stock = view
        if (
            stats.product_with_least_stock is None
            or view.total_quantity < stats.product_with_least_stock.total_quantity
        ):
            stats.product_with_least_stock = view

        stats.status_counts[view.status(today)] += 1

        for item in view.inventory:
            days_remaining = days_between(today, item.expiry_date)
            if days_remaining is None:
                continue
            status = classify_days(days_remaining)
            if status == STATUS_EXPIRED:
                stats.expired_count += item.quantity
                if month_start <= normalize_date(item.expiry_date) <= today:
                    stats.expired_this_month_count += item.quantity
            elif status == STATUS_EXPIRING_SOON:
                stats.expiring_soon_count += item.quantity

    (
        stats.most_rotated_product_id,
        stats.most_rotated_product_name,
        stats.most_rotated_quantity,
    ) = _most_rotated(consumption_records, now)
    return stats


__all__ = [
    "DEFAULT_SORT",
    "ProductWithInventory",
    "ReportStats",
    "SortConfig",
    "build_product_views",
    "compute_report_stats",
    "filter_and_sort",
]
