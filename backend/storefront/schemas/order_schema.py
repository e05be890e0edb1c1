from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel


class UserOut(BaseModel):
    id: int
    email: str
    role: str


class OrderItemOut(BaseModel):
    product_id: int
    quantity: int
    price_at_purchase: Decimal


class OrderOut(BaseModel):
    id: int
    user_id: int
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    currency: str
    status: str
    payment_status: str
    placed_at: Optional[datetime] = None
    items: List[OrderItemOut]
    user: Optional[UserOut] = None


class PageMeta(BaseModel):
    total_items: int
    items_per_page: int
    total_pages: int
    current_page: int


class OrderPage(BaseModel):
    data: List[OrderOut]
    meta: PageMeta
