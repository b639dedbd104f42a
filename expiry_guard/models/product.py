import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, String

from expiry_guard.core.constants import DEFAULT_UNIT
from expiry_guard.database.base import Base


def new_id() -> str:
    return str(uuid.uuid4())


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    unit = Column(String(16), nullable=False, default=DEFAULT_UNIT)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("idx_products_name", "name"),
    )

    def __repr__(self) -> str:
        return "Product(id={!r}, name={!r}, unit={!r})".format(self.id, self.name, self.unit)


__all__ = ["Product", "new_id"]
