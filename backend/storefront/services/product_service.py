from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.orm import Session

from storefront.models.product import Product
from storefront.repositories.inventory_repo import InventoryRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.services.cart_service import ProductNotFound
from storefront.services.inventory_service import InventoryService
from storefront.utils.logging import get_logger
from storefront.utils.transactions import LockingTransaction

log = get_logger(__name__)


class ProductService:
    def __init__(
        self,
        db: Session,
        product_repo: Optional[ProductRepository] = None,
        inventory_repo: Optional[InventoryRepository] = None,
    ):
        self.db = db
        self.product_repo = product_repo or ProductRepository(db)
        self.inventory = InventoryService(db, inventory_repo or InventoryRepository(db))

    def create_with_stock(self, data: Dict, initial_stock: int = 0) -> Product:
        """Create a product and its inventory row together."""
        with LockingTransaction(self.db) as tx:
            p = self.product_repo.create(
                sku=data["sku"],
                name=data["name"],
                price=Decimal(str(data.get("price", 0))),
                description=data.get("description"),
                image_url=data.get("image_url"),
            )
            self.inventory.create_record(p.id, initial_stock or 0)
            tx.commit()
        self.db.refresh(p)
        log.info("Created product %s (%s) with stock %s", p.id, p.sku, initial_stock)
        return p

    def get_product(self, product_id: int) -> Product:
        p = self.product_repo.get(product_id)
        if not p:
            raise ProductNotFound(product_id)
        return p

    def list_products(self, q: Optional[str] = None, page: int = 1, size: int = 20):
        return self.product_repo.list(q=q, page=page, size=size)

    def set_price(self, product_id: int, price: Decimal) -> Product:
        with LockingTransaction(self.db) as tx:
            p = self.get_product(product_id)
            self.product_repo.set_price(p, Decimal(str(price)))
            tx.commit()
        self.db.refresh(p)
        log.info("Product %s price set to %s", product_id, p.price)
        return p
