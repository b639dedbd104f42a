from datetime import datetime
from typing import Annotated, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from expiry_guard.core.constants import DEFAULT_UNIT, MIN_PRODUCT_NAME_LENGTH

Unit = Literal["unidades", "kg", "g", "lb", "litros", "ml"]


def _clean_name(value: str) -> str:
    value = value.strip()
    if len(value) < MIN_PRODUCT_NAME_LENGTH:
        raise ValueError(
            "name must be at least {} characters".format(MIN_PRODUCT_NAME_LENGTH)
        )
    return value


ProductName = Annotated[str, AfterValidator(_clean_name)]


class ProductRef(BaseModel):
    id: Optional[str] = None
    name: ProductName
    unit: Unit = DEFAULT_UNIT


class ProductUpdate(BaseModel):
    product_id: str
    name: ProductName
    unit: Unit


class ProductRead(BaseModel):
    id: str
    name: str
    unit: str
    created_at: Optional[datetime] = None
    batch_count: int = Field(default=0, ge=0)

    model_config = ConfigDict(from_attributes=True)
