from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer
from sqlalchemy.orm import relationship

from storefront.db import Base
from storefront.models.cart_item import CartItem  # noqa: F401
from storefront.models.user import User  # noqa: F401


class Cart(Base):
    __tablename__ = "carts"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    items = relationship(
        "CartItem", back_populates="cart", cascade="all, delete-orphan"
    )
