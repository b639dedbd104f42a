from typing import Optional


class InventoryError(Exception):
    """Base class for failures raised by inventory operations."""

    code = "inventory_error"

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(InventoryError):
    """Input has the wrong shape or is out of range."""

    code = "validation_error"


class DomainError(InventoryError):
    """A business rule rejected the operation."""

    code = "domain_error"


class StoreError(InventoryError):
    """The underlying database failed or aborted the transaction."""

    code = "store_error"


__all__ = ["DomainError", "InventoryError", "StoreError", "ValidationError"]
