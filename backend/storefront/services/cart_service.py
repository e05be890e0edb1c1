from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.models.cart import Cart
from storefront.models.cart_item import CartItem
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.inventory_repo import InventoryRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.utils.logging import get_logger
from storefront.utils.transactions import LockingTransaction

log = get_logger(__name__)

CENTS = Decimal("0.01")


class CartException(Exception):
    code = "CART_ERROR"

    def __init__(self, message: str, product_id: Optional[int] = None):
        super().__init__(message)
        self.product_id = product_id


class ProductNotFound(CartException):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: int):
        super().__init__("Product not found", product_id)


class CartItemNotFound(CartException):
    code = "CART_ITEM_NOT_FOUND"

    def __init__(self, product_id: int):
        super().__init__("Item not found in cart", product_id)


class InvalidCartQuantity(CartException):
    code = "INVALID_QUANTITY"

    def __init__(self, product_id: Optional[int] = None):
        super().__init__("Quantity must be at least 1", product_id)


class CartService:
    def __init__(
        self,
        db: Session,
        cart_repo: Optional[CartRepository] = None,
        product_repo: Optional[ProductRepository] = None,
        inventory_repo: Optional[InventoryRepository] = None,
    ):
        self.db = db
        self.cart_repo = cart_repo or CartRepository(db)
        self.product_repo = product_repo or ProductRepository(db)
        self.inventory_repo = inventory_repo or InventoryRepository(db)

    def get_or_create_cart(self, user_id: int) -> Cart:
        cart = self.cart_repo.get_by_user(user_id)
        if cart:
            return cart
        try:
            with LockingTransaction(self.db) as tx:
                cart = self.cart_repo.get_or_create_for_user(user_id)
                tx.commit()
        except IntegrityError:
            # another request created it first; carts.user_id is unique
            cart = self.cart_repo.get_by_user(user_id)
        return cart

    def get_cart(self, user_id: int) -> Dict:
        """
        Cart with items (newest first) and totals computed from current
        product prices.
        """
        cart = self.get_or_create_cart(user_id)
        items = self.cart_repo.list_items(cart.id)

        subtotal = Decimal("0")
        item_count = 0
        out = []
        for it in items:
            price = Decimal(it.product.price or 0)
            subtotal += price * it.quantity
            item_count += it.quantity
            out.append(
                {
                    "id": it.id,
                    "product_id": it.product_id,
                    "product": {
                        "id": it.product.id,
                        "name": it.product.name,
                        "sku": it.product.sku,
                        "price": it.product.price,
                        "image_url": it.product.image_url,
                    },
                    "quantity": it.quantity,
                    "created_at": it.created_at,
                    "updated_at": it.updated_at,
                }
            )
        return {
            "cart_id": cart.id,
            "items": out,
            "totals": {
                "subtotal": subtotal.quantize(CENTS, rounding=ROUND_HALF_UP),
                "item_count": item_count,
            },
        }

    def _add(self, user_id: int, product_id: int, quantity: int) -> CartItem:
        with LockingTransaction(self.db) as tx:
            if not self.product_repo.get(product_id):
                raise ProductNotFound(product_id)
            cart = self.cart_repo.get_or_create_for_user(user_id)
            item = self.cart_repo.add_or_increase_item(cart, product_id, quantity)
            tx.commit()
        return item

    def add_item(self, user_id: int, product_id: int, quantity: int = 1) -> CartItem:
        if quantity is None or quantity < 1:
            raise InvalidCartQuantity(product_id)
        try:
            item = self._add(user_id, product_id, quantity)
        except IntegrityError:
            # concurrent add of the same product won the insert; merge into its row
            item = self._add(user_id, product_id, quantity)
        log.info("User %s added %s x product %s", user_id, quantity, product_id)
        return item

    def update_item_quantity(
        self, user_id: int, product_id: int, quantity: int
    ) -> Optional[CartItem]:
        """Overwrite a line's quantity. quantity < 1 removes the line and returns None."""
        if quantity < 1:
            self.remove_item(user_id, product_id)
            return None

        with LockingTransaction(self.db) as tx:
            cart = self.cart_repo.get_by_user(user_id)
            item = self.cart_repo.get_item(cart.id, product_id) if cart else None
            if not item:
                raise CartItemNotFound(product_id)
            item.quantity = quantity
            tx.commit()
        return item

    def remove_item(self, user_id: int, product_id: int) -> bool:
        with LockingTransaction(self.db) as tx:
            cart = self.cart_repo.get_by_user(user_id)
            if not cart:
                return False
            deleted = self.cart_repo.delete_item(cart.id, product_id)
            tx.commit()
        return deleted > 0

    def clear_cart(self, user_id: int) -> bool:
        with LockingTransaction(self.db) as tx:
            cart = self.cart_repo.get_by_user(user_id)
            if not cart:
                return False
            cart_id = cart.id
            self.cart_repo.clear(cart_id)
            tx.commit()
        log.info("Cleared cart %s of user %s", cart_id, user_id)
        return True

    def get_item_count(self, user_id: int) -> int:
        cart = self.cart_repo.get_by_user(user_id)
        if not cart:
            return 0
        return int(self.cart_repo.count_quantity(cart.id))

    def validate_stock(self, user_id: int) -> Dict:
        """
        Dry run of checkout's stock check: report every line whose requested
        quantity exceeds what is on hand. Nothing is locked or written.
        """
        cart = self.get_or_create_cart(user_id)
        items = self.cart_repo.list_items(cart.id)
        stock = {
            inv.product_id: inv
            for inv in self.inventory_repo.for_products(it.product_id for it in items)
        }

        invalid_items = []
        for it in items:
            inv = stock.get(it.product_id)
            if not inv or inv.quantity < it.quantity:
                invalid_items.append(
                    {
                        "product_id": it.product_id,
                        "product_name": it.product.name if it.product else None,
                        "requested_quantity": it.quantity,
                        "available_quantity": inv.quantity if inv else 0,
                    }
                )
        return {"valid": not invalid_items, "invalid_items": invalid_items}
