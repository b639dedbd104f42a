from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Date, DateTime, Float, Index, Integer, String

from expiry_guard.database.base import Base
from expiry_guard.models.product import new_id


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=new_id)
    inventory_item_id = Column(String(36), nullable=False)

    product_name = Column(String, nullable=False)
    quantity = Column(Float, nullable=False)
    expiry_date = Column(Date, nullable=False)
    days_until_expiry = Column(Integer, nullable=False)
    read = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("idx_notifications_item", "inventory_item_id", unique=True),
        Index("idx_notifications_expiry", "expiry_date"),
    )


__all__ = ["Notification"]
