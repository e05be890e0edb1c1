"""
Hammer a running server with concurrent purchases of one product and report
how many succeeded and the stock level left behind. With correct locking the
number of successes never exceeds the starting stock and the level never goes
negative.

    python tools/concurrency_checkout.py buy --product 1 --workers 16
    python tools/concurrency_checkout.py checkout --product 1 --users 2,3,4,5
"""
import argparse
import concurrent.futures
import os
from collections import Counter

import requests

BASE = os.environ.get("STOREFRONT_BASE", "http://127.0.0.1:8000")


def buy_task(i, product_id, user_id):
    try:
        r = requests.post(
            f"{BASE}/api/products/{product_id}/buy",
            headers={"X-User-Id": str(user_id)},
            timeout=20,
        )
        return (i, "buy", r.status_code, r.text)
    except requests.RequestException as e:
        return (i, "buy", "ERR", str(e))


def checkout_task(i, product_id, user_id, qty):
    headers = {"X-User-Id": str(user_id)}
    try:
        r = requests.post(
            f"{BASE}/api/cart/items",
            json={"product_id": product_id, "quantity": qty},
            headers=headers,
            timeout=10,
        )
        if r.status_code != 201:
            return (i, "cart", r.status_code, r.text)
        r = requests.post(f"{BASE}/api/orders/checkout", headers=headers, timeout=20)
        return (i, "checkout", r.status_code, r.text)
    except requests.RequestException as e:
        return (i, "checkout", "ERR", str(e))


def stock_level(product_id):
    r = requests.get(f"{BASE}/api/inventory/{product_id}", timeout=10)
    r.raise_for_status()
    return r.json()["quantity"]


def report(results, product_id, start):
    print("Results:")
    for r in results:
        print(r)
    print("Status counts:", dict(Counter(r[2] for r in results)))
    end = stock_level(product_id)
    print(f"Stock before={start} after={end}")
    if end < 0:
        print("OVERSOLD: stock went negative")


def run_buy_concurrent(workers, product_id, user_id):
    print(f"Running buy test: workers={workers}, product={product_id}")
    start = stock_level(product_id)
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        futures = [ex.submit(buy_task, i, product_id, user_id) for i in range(workers)]
        results = [f.result() for f in futures]
    report(results, product_id, start)


def run_checkout_concurrent(users, product_id, qty):
    print(f"Running checkout test: users={users}, product={product_id}, qty={qty}")
    start = stock_level(product_id)
    with concurrent.futures.ThreadPoolExecutor(max_workers=len(users)) as ex:
        futures = [
            ex.submit(checkout_task, i, product_id, uid, qty) for i, uid in enumerate(users)
        ]
        results = [f.result() for f in futures]
    report(results, product_id, start)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrency test tool (buy or checkout).")
    sub = parser.add_subparsers(dest="mode", required=True)

    b = sub.add_parser("buy")
    b.add_argument("--product", type=int, required=True)
    b.add_argument("--user", type=int, default=1)
    b.add_argument("--workers", type=int, default=8)

    c = sub.add_parser("checkout")
    c.add_argument("--product", type=int, required=True)
    c.add_argument("--users", required=True, help="comma separated user ids, one cart each")
    c.add_argument("--qty", type=int, default=1)

    args = parser.parse_args()

    if args.mode == "buy":
        run_buy_concurrent(args.workers, args.product, args.user)
    elif args.mode == "checkout":
        user_ids = [int(u) for u in args.users.split(",") if u.strip()]
        run_checkout_concurrent(user_ids, args.product, args.qty)
