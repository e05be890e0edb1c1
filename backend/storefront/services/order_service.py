import math
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.models.order import Order
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.inventory_repo import InventoryRepository
from storefront.repositories.order_repo import OrderRepository
from storefront.utils.logging import get_logger
from storefront.utils.transactions import LockingTransaction

log = get_logger(__name__)


class OrderServiceException(Exception):
    code = "ORDER_ERROR"

    def __init__(self, message: str, product_id: Optional[int] = None):
        super().__init__(message)
        self.product_id = product_id


class EmptyCart(OrderServiceException):
    code = "EMPTY_CART"

    def __init__(self):
        super().__init__("Cart is empty")


class InsufficientStock(OrderServiceException):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int):
        super().__init__(f"Insufficient stock for product {product_id}", product_id)


class OrderNotFound(OrderServiceException):
    code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: int):
        super().__init__("Order not found")
        self.order_id = order_id


class OrderService:
    def __init__(
        self,
        db: Session,
        cart_repo: Optional[CartRepository] = None,
        inventory_repo: Optional[InventoryRepository] = None,
        order_repo: Optional[OrderRepository] = None,
    ):
        self.db = db
        self.cart_repo = cart_repo or CartRepository(db)
        self.inventory_repo = inventory_repo or InventoryRepository(db)
        self.order_repo = order_repo or OrderRepository(db)

    def checkout(self, user_id: int) -> Dict:
        """
        Turn the user's cart into a pending, unpaid order and decrement stock.

        Runs as one locked transaction:
          1. find-or-create the cart, lock its lines (with current products)
          2. EmptyCart if there are none
          3. lock the inventory rows of every product in the cart
          4. InsufficientStock on the first line that can't be covered
          5. price every line at the product's price right now
          6-7. create the order and its items
          8. decrement inventory by relative update under the same locks
          9. delete the cart lines
          10. commit and return the order with items and user

        Any exception leaves cart, inventory and orders exactly as they were.
        """
        with LockingTransaction(self.db) as tx:
            cart = self.cart_repo.get_or_create_for_user(user_id)
            items = tx.lock_cart_items(cart.id)
            if not items:
                log.warning("Checkout rejected for user %s: cart is empty", user_id)
                raise EmptyCart()

            inventories = tx.lock_inventories(it.product_id for it in items)
            for it in items:
                inv = inventories.get(it.product_id)
                if not inv or inv.quantity < it.quantity:
                    log.warning(
                        "Checkout rejected for user %s: product %s wants %s, has %s",
                        user_id,
                        it.product_id,
                        it.quantity,
                        inv.quantity if inv else 0,
                    )
                    raise InsufficientStock(it.product_id)

            lines = []
            subtotal = Decimal("0")
            for it in items:
                price = Decimal(it.product.price or 0)
                subtotal += price * it.quantity
                lines.append(
                    {
                        "product_id": it.product_id,
                        "quantity": it.quantity,
                        "price_at_purchase": price,
                    }
                )
            tax = Decimal("0")

            order = self.order_repo.create(
                Order(
                    user_id=user_id,
                    subtotal=subtotal,
                    tax=tax,
                    total=subtotal + tax,
                    currency=settings.CURRENCY,
                    status="pending",
                    payment_status="unpaid",
                    placed_at=datetime.now(timezone.utc),
                )
            )
            self.order_repo.bulk_add_items(order, lines)

            for it in items:
                self.inventory_repo.increment(it.product_id, -it.quantity)

            self.cart_repo.clear(cart.id)

            self.db.expire(order)
            created = self.order_repo.get(order.id)
            resp = created.to_dict()
            tx.commit()

        log.info(
            "Order %s placed by user %s: %s lines, total %s %s",
            resp["id"],
            user_id,
            len(resp["items"]),
            resp["total"],
            resp["currency"],
        )
        return resp

    def get_order(self, order_id: int, user_id: Optional[int] = None) -> Dict:
        """Order with items and user. Restrict to one owner by passing user_id."""
        order = self.order_repo.get(order_id)
        if not order or (user_id is not None and order.user_id != user_id):
            raise OrderNotFound(order_id)
        return order.to_dict()

    def list_orders(
        self,
        page: int = 1,
        limit: Optional[int] = None,
        user_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> Dict:
        limit = limit or settings.DEFAULT_PAGE_SIZE
        rows, total = self.order_repo.list(
            page=page, limit=limit, user_id=user_id, status=status
        )
        return {
            "data": [o.to_dict() for o in rows],
            "meta": {
                "total_items": total,
                "items_per_page": limit,
                "total_pages": math.ceil(total / limit) if limit else 0,
                "current_page": page,
            },
        }
