from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, Float, Index, String

from expiry_guard.core.constants import DEFAULT_UNIT
from expiry_guard.database.base import Base
from expiry_guard.models.product import new_id


class InventoryBatch(Base):
    """A dated quantity ("lot") of one product."""

    __tablename__ = "inventory"

    id = Column(String(36), primary_key=True, default=new_id)
    # no foreign key: history rows outlive their product
    product_id = Column(String(36), nullable=False)

    quantity = Column(Float, nullable=False)
    expiry_date = Column(Date, nullable=False)
    unit = Column(String(16), nullable=False, default=DEFAULT_UNIT)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("idx_inventory_product_expiry", "product_id", "expiry_date"),
        Index("idx_inventory_expiry", "expiry_date"),
    )

    def __repr__(self) -> str:
        return "InventoryBatch(id={!r}, product_id={!r}, quantity={!r}, expiry_date={!r})".format(
            self.id, self.product_id, self.quantity, self.expiry_date
        )


__all__ = ["InventoryBatch"]
