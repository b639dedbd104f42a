from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, Index, String

from expiry_guard.core.constants import DEFAULT_UNIT
from expiry_guard.database.base import Base
from expiry_guard.models.product import new_id


class ConsumptionRecord(Base):
    __tablename__ = "consumption_history"

    id = Column(String(36), primary_key=True, default=new_id)
    product_id = Column(String(36), nullable=False)
    product_name = Column(String, nullable=False, default="")

    quantity = Column(Float, nullable=False)
    unit = Column(String(16), nullable=False, default=DEFAULT_UNIT)
    consumed_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("idx_consumption_product", "product_id"),
        Index("idx_consumption_consumed_at", "consumed_at"),
    )


__all__ = ["ConsumptionRecord"]
