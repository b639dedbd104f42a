from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from expiry_guard.schemas.product import ProductRef


class BatchCreate(BaseModel):
    product: ProductRef
    quantity: float = Field(gt=0)
    expiry_date: date


class BatchConsume(BaseModel):
    batch_id: str
    quantity: float = Field(gt=0)


class ConsumptionRead(BaseModel):
    id: str
    product_id: str
    product_name: str
    quantity: float
    unit: str
    consumed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationRead(BaseModel):
    id: str
    inventory_item_id: str
    product_name: str
    quantity: float
    expiry_date: date
    days_until_expiry: int
    read: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
