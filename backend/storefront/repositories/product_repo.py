from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from storefront.models.product import Product


class ProductRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, product_id: int) -> Optional[Product]:
        return self.db.get(Product, product_id)

    def get_by_sku(self, sku: str) -> Optional[Product]:
        return self.db.query(Product).filter(Product.sku == sku).first()

    def list(
        self, q: Optional[str] = None, page: int = 1, size: int = 20
    ) -> Tuple[List[Product], int]:
        query = self.db.query(Product).filter(Product.active == True)  # noqa: E712
        if q:
            like = f"%{q}%"
            query = query.filter(
                (Product.name.ilike(like)) | (Product.description.ilike(like))
            )
        total = query.with_entities(func.count()).scalar() or 0
        items = query.order_by(Product.name).offset((page - 1) * size).limit(size).all()
        return items, total

    def create(
        self,
        sku: str,
        name: str,
        price: Decimal,
        description: str = None,
        image_url: str = None,
    ) -> Product:
        p = Product(
            sku=sku,
            name=name,
            price=price,
            description=description,
            image_url=image_url,
        )
        self.db.add(p)
        self.db.flush()
        return p

    def set_price(self, product: Product, price: Decimal) -> Product:
        product.price = price
        self.db.flush()
        return product
