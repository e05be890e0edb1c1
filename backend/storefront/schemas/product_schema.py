from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    sku: str
    name: str
    description: Optional[str] = None
    price: Decimal
    image_url: Optional[str] = None
    active: bool


class ProductCreateIn(BaseModel):
    sku: str
    name: str
    price: Decimal = Field(..., ge=0)
    description: Optional[str] = None
    image_url: Optional[str] = None
    initial_stock: int = Field(0, ge=0)


class PriceIn(BaseModel):
    price: Decimal = Field(..., ge=0)


class RestockIn(BaseModel):
    # sign is validated by the inventory service so a bad delta maps to
    # INVALID_RESTOCK_QUANTITY rather than a generic 422
    quantity: int


class InventoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    product_id: int
    quantity: int
    reserved_quantity: int
