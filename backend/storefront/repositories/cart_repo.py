from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from storefront.models.cart import Cart
from storefront.models.cart_item import CartItem


class CartRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_user(self, user_id: int) -> Optional[Cart]:
        return self.db.query(Cart).filter(Cart.user_id == user_id).first()

    def get_or_create_for_user(self, user_id: int) -> Cart:
        c = self.get_by_user(user_id)
        if c:
            return c
        c = Cart(user_id=user_id)
        self.db.add(c)
        self.db.flush()
        return c

    def list_items(self, cart_id: int) -> List[CartItem]:
        return (
            self.db.query(CartItem)
            .options(selectinload(CartItem.product))
            .filter(CartItem.cart_id == cart_id)
            .order_by(CartItem.created_at.desc(), CartItem.id.desc())
            .all()
        )

    def get_item(self, cart_id: int, product_id: int) -> Optional[CartItem]:
        return (
            self.db.query(CartItem)
            .filter(CartItem.cart_id == cart_id, CartItem.product_id == product_id)
            .first()
        )

    def add_or_increase_item(self, cart: Cart, product_id: int, qty: int) -> CartItem:
        item = self.get_item(cart.id, product_id)
        if item:
            item.quantity = item.quantity + qty
        else:
            item = CartItem(cart_id=cart.id, product_id=product_id, quantity=qty)
            self.db.add(item)
        self.db.flush()
        return item

    def delete_item(self, cart_id: int, product_id: int) -> int:
        deleted = (
            self.db.query(CartItem)
            .filter(CartItem.cart_id == cart_id, CartItem.product_id == product_id)
            .delete(synchronize_session=False)
        )
        self.db.flush()
        return deleted

    def clear(self, cart_id: int) -> int:
        deleted = (
            self.db.query(CartItem)
            .filter(CartItem.cart_id == cart_id)
            .delete(synchronize_session=False)
        )
        self.db.flush()
        return deleted

    def count_quantity(self, cart_id: int) -> int:
        return (
            self.db.query(func.coalesce(func.sum(CartItem.quantity), 0))
            .filter(CartItem.cart_id == cart_id)
            .scalar()
            or 0
        )
