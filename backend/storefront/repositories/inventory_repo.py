from typing import Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from storefront.models.inventory import Inventory


class InventoryRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, product_id: int) -> Optional[Inventory]:
        return self.db.get(Inventory, product_id)

    def for_products(self, product_ids: Iterable[int]) -> List[Inventory]:
        ids = list(set(product_ids))
        if not ids:
            return []
        return self.db.query(Inventory).filter(Inventory.product_id.in_(ids)).all()

    def create(self, product_id: int, quantity: int = 0) -> Inventory:
        inv = Inventory(product_id=product_id, quantity=quantity, reserved_quantity=0)
        self.db.add(inv)
        self.db.flush()
        return inv

    def increment(self, product_id: int, delta: int) -> int:
        """
        Relative update: UPDATE inventories SET quantity = quantity + delta.
        Never read-modify-write in Python, so concurrent updates can't be lost.
        Returns the number of rows touched.
        """
        result = self.db.execute(
            update(Inventory)
            .where(Inventory.product_id == product_id)
            .values(quantity=Inventory.quantity + delta)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
