"""
Print inventory levels and the most recent orders.

    python tools/db_check.py            # everything
    python tools/db_check.py 7          # only product 7
"""
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from storefront.db import SessionLocal, init_db
from storefront.models.inventory import Inventory
from storefront.models.order import Order
from storefront.models.product import Product

PRODUCT_ID = int(sys.argv[1]) if len(sys.argv) > 1 else None


def main():
    init_db()
    s = SessionLocal()
    try:
        print("=== Inventory ===")
        q = s.query(Product, Inventory).outerjoin(Inventory, Inventory.product_id == Product.id)
        if PRODUCT_ID is not None:
            q = q.filter(Product.id == PRODUCT_ID)
        for p, inv in q.order_by(Product.id).all():
            qty = inv.quantity if inv else None
            flag = "  <-- NEGATIVE" if qty is not None and qty < 0 else ""
            print({"id": p.id, "sku": p.sku, "price": str(p.price), "quantity": qty}, flag)

        print("\n=== Recent Orders ===")
        for o in s.query(Order).order_by(Order.id.desc()).limit(20).all():
            lines = [(it.product_id, it.quantity, str(it.price_at_purchase)) for it in o.items]
            if PRODUCT_ID is not None and not any(l[0] == PRODUCT_ID for l in lines):
                continue
            print(
                {
                    "id": o.id,
                    "user_id": o.user_id,
                    "status": o.status,
                    "payment_status": o.payment_status,
                    "total": f"{o.total} {o.currency}",
                    "placed_at": o.placed_at.isoformat() if o.placed_at else None,
                    "lines": lines,
                }
            )
    finally:
        s.close()


if __name__ == "__main__":
    main()
