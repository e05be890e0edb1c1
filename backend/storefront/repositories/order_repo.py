from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from storefront.models.order import Order, OrderItem


class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, order: Order) -> Order:
        self.db.add(order)
        self.db.flush()
        return order

    def bulk_add_items(self, order: Order, lines: List[dict]) -> List[OrderItem]:
        items = [OrderItem(order_id=order.id, **line) for line in lines]
        self.db.add_all(items)
        self.db.flush()
        return items

    def _with_relations(self):
        return self.db.query(Order).options(
            selectinload(Order.items), selectinload(Order.user)
        )

    def get(self, order_id: int) -> Optional[Order]:
        return self._with_relations().filter(Order.id == order_id).first()

    def list(
        self,
        page: int = 1,
        limit: int = 10,
        user_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> Tuple[List[Order], int]:
        query = self.db.query(Order)
        if user_id is not None:
            query = query.filter(Order.user_id == user_id)
        if status:
            query = query.filter(Order.status == status)
        total = query.with_entities(func.count(Order.id)).scalar() or 0
        rows = (
            query.options(selectinload(Order.items), selectinload(Order.user))
            .order_by(Order.placed_at.desc(), Order.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return rows, total
