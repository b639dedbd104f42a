import importlib

from expiry_guard.models.consumption import ConsumptionRecord
from expiry_guard.models.inventory import InventoryBatch
from expiry_guard.models.notification import Notification
from expiry_guard.models.product import Product


def import_all_models() -> None:
    for module_name in (
        "expiry_guard.models.consumption",
        "expiry_guard.models.inventory",
        "expiry_guard.models.notification",
        "expiry_guard.models.product",
    ):
        importlib.import_module(module_name)


__all__ = [
    "ConsumptionRecord",
    "InventoryBatch",
    "Notification",
    "Product",
    "import_all_models",
]
