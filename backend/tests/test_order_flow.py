import random
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from storefront.db import SessionLocal
from storefront.models.cart_item import CartItem
from storefront.models.inventory import Inventory
from storefront.models.order import Order, OrderItem
from storefront.repositories.order_repo import OrderRepository
from storefront.services.cart_service import CartService
from storefront.services.inventory_service import InventoryService, OutOfStock
from storefront.services.order_service import (
    EmptyCart,
    InsufficientStock,
    OrderNotFound,
    OrderService,
)
from storefront.services.product_service import ProductService


def _snapshot(user_id):
    """Cart lines, stock levels and order rows as plain data."""
    s = SessionLocal()
    try:
        cart = sorted(
            (it.product_id, it.quantity)
            for it in s.query(CartItem).all()
            if it.cart.user_id == user_id
        )
        stock = sorted((inv.product_id, inv.quantity) for inv in s.query(Inventory).all())
        orders = s.query(Order).count(), s.query(OrderItem).count()
        return cart, stock, orders
    finally:
        s.close()


def test_checkout_creates_pending_order(db, customer_id, make_product):
    tea = make_product("T1", price="3.00", stock=5)
    coffee = make_product("T2", price="6.00", stock=1)
    carts = CartService(db)
    carts.add_item(customer_id, tea, 2)
    carts.add_item(customer_id, coffee, 1)

    order = OrderService(db).checkout(customer_id)

    assert order["user_id"] == customer_id
    assert order["status"] == "pending"
    assert order["payment_status"] == "unpaid"
    assert order["currency"] == "SAR"
    assert order["subtotal"] == Decimal("12.00")
    assert order["tax"] == Decimal("0")
    assert order["total"] == Decimal("12.00")
    assert order["placed_at"] is not None
    assert order["user"] == {"id": customer_id, "email": "customer@example.com", "role": "customer"}
    assert sorted((i["product_id"], i["quantity"], i["price_at_purchase"]) for i in order["items"]) == [
        (tea, 2, Decimal("3.00")),
        (coffee, 1, Decimal("6.00")),
    ]

    cart, stock, orders = _snapshot(customer_id)
    assert cart == []
    assert dict(stock) == {tea: 3, coffee: 0}
    assert orders == (1, 2)


def test_cart_is_empty_after_checkout(db, customer_id, make_product):
    pid = make_product("T1", stock=5)
    CartService(db).add_item(customer_id, pid, 1)
    OrderService(db).checkout(customer_id)

    assert CartService(db).get_item_count(customer_id) == 0
    assert CartService(db).get_cart(customer_id)["items"] == []


def test_checkout_empty_cart(db, customer_id):
    before = _snapshot(customer_id)
    with pytest.raises(EmptyCart) as exc:
        OrderService(db).checkout(customer_id)
    assert exc.value.code == "EMPTY_CART"
    assert _snapshot(customer_id) == before


def test_insufficient_stock_leaves_everything_untouched(db, customer_id, make_product):
    pid = make_product("P7", stock=2)
    CartService(db).add_item(customer_id, pid, 5)
    before = _snapshot(customer_id)

    with pytest.raises(InsufficientStock) as exc:
        OrderService(db).checkout(customer_id)

    assert exc.value.code == "INSUFFICIENT_STOCK"
    assert exc.value.product_id == pid
    assert _snapshot(customer_id) == before
    assert dict(before[1])[pid] == 2
    assert before[0] == [(pid, 5)]


def test_one_short_line_aborts_whole_checkout(db, customer_id, make_product):
    plenty = make_product("PLENTY", stock=50)
    short = make_product("SHORT", stock=1)
    carts = CartService(db)
    carts.add_item(customer_id, plenty, 3)
    carts.add_item(customer_id, short, 2)
    before = _snapshot(customer_id)

    with pytest.raises(InsufficientStock) as exc:
        OrderService(db).checkout(customer_id)

    assert exc.value.product_id == short
    assert _snapshot(customer_id) == before


def test_product_without_inventory_is_insufficient(db, customer_id, make_product):
    pid = make_product("GHOST", stock=3)
    CartService(db).add_item(customer_id, pid, 1)
    db.query(Inventory).filter(Inventory.product_id == pid).delete()
    db.commit()

    with pytest.raises(InsufficientStock):
        OrderService(db).checkout(customer_id)


class ExplodingOrderRepository(OrderRepository):
    def bulk_add_items(self, order, lines):
        raise RuntimeError("storage failure")


def test_storage_failure_rolls_back(db, customer_id, make_product):
    pid = make_product("T1", stock=5)
    CartService(db).add_item(customer_id, pid, 2)
    before = _snapshot(customer_id)

    svc = OrderService(db, order_repo=ExplodingOrderRepository(db))
    with pytest.raises(RuntimeError):
        svc.checkout(customer_id)

    assert _snapshot(customer_id) == before


def test_price_is_read_at_checkout_not_cart_add(db, customer_id, make_product):
    pid = make_product("PRICEY", price="10.00", stock=5)
    CartService(db).add_item(customer_id, pid, 2)
    ProductService(db).set_price(pid, Decimal("12.50"))

    order = OrderService(db).checkout(customer_id)

    assert order["items"][0]["price_at_purchase"] == Decimal("12.50")
    assert order["total"] == Decimal("25.00")

    # later catalogue changes don't touch the placed order
    ProductService(db).set_price(pid, Decimal("1.00"))
    again = OrderService(db).get_order(order["id"])
    assert again["items"][0]["price_at_purchase"] == Decimal("12.50")


def test_concurrent_checkouts_never_oversell(make_user, make_product):
    pid = make_product("HOT", stock=3)
    users = [make_user(f"buyer{i}@example.com") for i in range(6)]
    s = SessionLocal()
    try:
        for uid in users:
            CartService(s).add_item(uid, pid, 1)
    finally:
        s.close()

    def checkout(uid):
        session = SessionLocal()
        try:
            OrderService(session).checkout(uid)
            return "ok"
        except InsufficientStock:
            return "short"
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=6) as ex:
        results = list(ex.map(checkout, users))

    assert results.count("ok") == 3
    assert results.count("short") == 3

    s = SessionLocal()
    try:
        assert s.get(Inventory, pid).quantity == 0
        assert s.query(Order).count() == 3
    finally:
        s.close()


def test_checkouts_buys_and_restocks_on_one_product_balance(make_user, make_product):
    pid = make_product("MIX", stock=4)
    buyers = [make_user(f"mix{i}@example.com") for i in range(6)]
    s = SessionLocal()
    try:
        for uid in buyers:
            CartService(s).add_item(uid, pid, 1)
    finally:
        s.close()

    tasks = []
    for i, uid in enumerate(buyers):
        tasks.append(("checkout", uid))
        tasks.append(("buy", None))
        if i % 2 == 0:
            tasks.append(("restock", 2))
    random.Random(7).shuffle(tasks)

    def run(task):
        kind, arg = task
        session = SessionLocal()
        try:
            if kind == "checkout":
                OrderService(session).checkout(arg)
            elif kind == "buy":
                InventoryService(session).decrease_stock(pid, 1)
            else:
                InventoryService(session).add_stock(pid, arg)
            return kind, "ok"
        except (InsufficientStock, OutOfStock):
            return kind, "short"
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=8) as ex:
        results = list(ex.map(run, tasks))

    ok = Counter(kind for kind, outcome in results if outcome == "ok")
    assert ok["restock"] == 3
    # 12 units wanted, at most 10 ever on hand
    assert ok["checkout"] + ok["buy"] <= 10

    s = SessionLocal()
    try:
        final = s.get(Inventory, pid).quantity
        assert final >= 0
        assert final == 4 + 2 * ok["restock"] - ok["checkout"] - ok["buy"]
        assert s.query(Order).count() == ok["checkout"]
    finally:
        s.close()


def test_cart_and_price_writes_alongside_checkouts(make_user, make_product):
    hot = make_product("HOT", stock=100)
    other = make_product("OTHER", price="2.00", stock=100)
    buyers = [make_user(f"buyer{i}@example.com") for i in range(10)]
    shoppers = [make_user(f"shopper{i}@example.com") for i in range(3)]
    s = SessionLocal()
    try:
        for uid in buyers:
            CartService(s).add_item(uid, hot, 1)
    finally:
        s.close()

    tasks = [("checkout", uid) for uid in buyers]
    tasks += [("add", uid) for uid in shoppers for _ in range(10)]
    tasks += [("price", None)] * 5
    random.Random(3).shuffle(tasks)

    def run(task):
        kind, uid = task
        session = SessionLocal()
        try:
            if kind == "checkout":
                OrderService(session).checkout(uid)
            elif kind == "add":
                CartService(session).add_item(uid, other, 1)
            else:
                ProductService(session).set_price(other, Decimal("2.50"))
            return kind
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=12) as ex:
        results = list(ex.map(run, tasks))

    assert Counter(results) == {"checkout": 10, "add": 30, "price": 5}

    s = SessionLocal()
    try:
        assert [CartService(s).get_item_count(uid) for uid in shoppers] == [10, 10, 10]
        assert s.get(Inventory, hot).quantity == 90
        assert s.query(Order).count() == 10
    finally:
        s.close()


def test_get_and_list_orders(db, make_user, make_product):
    pid = make_product("T1", stock=10)
    alice = make_user("alice@example.com")
    bob = make_user("bob@example.com")
    carts = CartService(db)
    orders = OrderService(db)
    for uid in (alice, alice, bob):
        carts.add_item(uid, pid, 1)
        orders.checkout(uid)

    page = orders.list_orders(page=1, limit=2)
    assert page["meta"] == {
        "total_items": 3,
        "items_per_page": 2,
        "total_pages": 2,
        "current_page": 1,
    }
    assert len(page["data"]) == 2

    mine = orders.list_orders(user_id=alice)
    assert mine["meta"]["total_items"] == 2
    assert all(o["user_id"] == alice for o in mine["data"])

    first = mine["data"][0]
    assert orders.get_order(first["id"], user_id=alice)["id"] == first["id"]
    with pytest.raises(OrderNotFound):
        orders.get_order(first["id"], user_id=bob)
    with pytest.raises(OrderNotFound):
        orders.get_order(9999)


def test_checkout_routes(client, customer_id, admin_id, make_product):
    pid = make_product("T1", price="3.00", stock=1)
    headers = {"X-User-Id": str(customer_id)}

    r = client.post("/api/orders/checkout", headers=headers)
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "EMPTY_CART"

    client.post("/api/cart/items", json={"product_id": pid, "quantity": 2}, headers=headers)
    r = client.post("/api/orders/checkout", headers=headers)
    assert r.status_code == 400
    assert r.json()["detail"] == {
        "code": "INSUFFICIENT_STOCK",
        "message": f"Insufficient stock for product {pid}",
        "product_id": pid,
    }

    client.put(f"/api/cart/items/{pid}", json={"quantity": 1}, headers=headers)
    r = client.post("/api/orders/checkout", headers=headers)
    assert r.status_code == 201
    body = r.json()
    assert body["status"] == "pending"
    assert Decimal(body["total"]) == Decimal("3.00")
    assert body["items"][0]["product_id"] == pid
    assert body["user"]["email"] == "customer@example.com"
    order_id = body["id"]

    r = client.get("/api/orders", headers=headers)
    assert r.status_code == 200
    assert [o["id"] for o in r.json()["data"]] == [order_id]

    assert client.get(f"/api/orders/{order_id}", headers=headers).status_code == 200
    assert client.get(f"/api/orders/{order_id + 1}", headers=headers).status_code == 404

    assert client.get("/api/admin/orders", headers=headers).status_code == 403
    admin = {"X-User-Id": str(admin_id)}
    r = client.get("/api/admin/orders", headers=admin)
    assert r.status_code == 200
    assert r.json()["meta"]["total_items"] == 1
    assert client.get(f"/api/admin/orders/{order_id}", headers=admin).json()["id"] == order_id


def test_checkout_route_hides_internal_errors(client, customer_id, monkeypatch):
    def explode(self, user_id):
        raise RuntimeError("disk full")

    monkeypatch.setattr(OrderService, "checkout", explode)
    r = client.post("/api/orders/checkout", headers={"X-User-Id": str(customer_id)})
    assert r.status_code == 500
    assert r.json() == {"detail": "Internal server error"}
    assert "RuntimeError" not in r.text
