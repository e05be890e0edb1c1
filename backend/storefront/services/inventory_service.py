from typing import Optional

from sqlalchemy.orm import Session

from storefront.models.inventory import Inventory
from storefront.repositories.inventory_repo import InventoryRepository
from storefront.utils.logging import get_logger
from storefront.utils.transactions import LockingTransaction

log = get_logger(__name__)


class InventoryException(Exception):
    code = "INVENTORY_ERROR"

    def __init__(self, message: str, product_id: Optional[int] = None):
        super().__init__(message)
        self.product_id = product_id


class InventoryNotFound(InventoryException):
    code = "INVENTORY_NOT_FOUND"

    def __init__(self, product_id: int):
        super().__init__("Product inventory not found", product_id)


class InvalidRestockQuantity(InventoryException):
    code = "INVALID_RESTOCK_QUANTITY"

    def __init__(self, product_id: Optional[int] = None):
        super().__init__("Restock quantity must be positive", product_id)


class InvalidQuantity(InventoryException):
    code = "INVALID_QUANTITY"

    def __init__(self, product_id: Optional[int] = None):
        super().__init__("Quantity must be at least 1", product_id)


class OutOfStock(InventoryException):
    code = "OUT_OF_STOCK"

    def __init__(self, product_id: int):
        super().__init__("OUT_OF_STOCK", product_id)


class InventoryService:
    def __init__(self, db: Session, inventory_repo: Optional[InventoryRepository] = None):
        self.db = db
        self.inventory_repo = inventory_repo or InventoryRepository(db)

    def get_stock(self, product_id: int) -> Inventory:
        inv = self.inventory_repo.get(product_id)
        if not inv:
            raise InventoryNotFound(product_id)
        return inv

    def create_record(self, product_id: int, quantity: int = 0) -> Inventory:
        """Create the inventory row for a new product. Caller commits."""
        if quantity < 0:
            raise InvalidRestockQuantity(product_id)
        return self.inventory_repo.create(product_id, quantity)

    def add_stock(self, product_id: int, delta: int) -> Inventory:
        """
        Restock: quantity = quantity + delta, applied as a relative UPDATE so
        concurrent restocks never overwrite each other.
        """
        if delta is None or delta <= 0:
            raise InvalidRestockQuantity(product_id)

        with LockingTransaction(self.db) as tx:
            inv = tx.lock_inventory(product_id)
            if not inv:
                raise InventoryNotFound(product_id)
            self.inventory_repo.increment(product_id, delta)
            tx.commit()

        self.db.refresh(inv)
        log.info("Restocked product %s by %s, now %s", product_id, delta, inv.quantity)
        return inv

    def decrease_stock(self, product_id: int, quantity: int = 1) -> Inventory:
        """
        Single purchase path, in its own transaction. The row is locked and
        validated before the relative decrement, the same order checkout
        uses, so a failed call leaves nothing behind.
        """
        if quantity is None or quantity < 1:
            raise InvalidQuantity(product_id)

        with LockingTransaction(self.db) as tx:
            inv = tx.lock_inventory(product_id)
            if not inv or inv.quantity < quantity:
                log.warning(
                    "Out of stock for product %s (requested %s, available %s)",
                    product_id,
                    quantity,
                    inv.quantity if inv else None,
                )
                raise OutOfStock(product_id)

            self.inventory_repo.increment(product_id, -quantity)
            tx.commit()

        self.db.refresh(inv)
        log.info("Decreased stock of product %s by %s, now %s", product_id, quantity, inv.quantity)
        return inv
