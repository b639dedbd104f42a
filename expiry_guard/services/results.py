import logging
from dataclasses import dataclass
from typing import Optional

from expiry_guard.core.errors import InventoryError, StoreError


@dataclass
class MutationResult:
    ok: bool
    message: str
    product_id: Optional[str] = None
    batch_id: Optional[str] = None
    error: Optional[str] = None


def failure(logger: logging.Logger, action: str, exc: InventoryError) -> MutationResult:
    """Turn a caught inventory error into a failed result.

    Must be called from inside the ``except`` block so store failures keep
    their traceback in the log.
    """
    if isinstance(exc, StoreError):
        logger.exception("Failed to %s", action)
    else:
        logger.warning("Rejected %s: %s", action, exc)
    return MutationResult(ok=False, message=str(exc), error=exc.code)


__all__ = ["MutationResult", "failure"]
