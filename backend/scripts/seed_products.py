#!/usr/bin/env python3
"""
Seed users and products (with inventory) from a JSON file, or from a small
built-in catalogue when no file is given. Existing SKUs and emails are left
alone, so the script can be re-run safely.

Usage:
    python scripts/seed_products.py
    python scripts/seed_products.py --file ../public/mock/catalogue.json
"""
import argparse
import json
import os
import sys
from decimal import Decimal, InvalidOperation

# allow running from repo/scripts
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from storefront.db import SessionLocal, init_db
from storefront.repositories.product_repo import ProductRepository
from storefront.repositories.user_repo import UserRepository
from storefront.services.product_service import ProductService

DEFAULT_USERS = [
    {"email": "admin@example.com", "role": "admin"},
    {"email": "customer@example.com", "role": "customer"},
]

DEFAULT_PRODUCTS = [
    {"sku": "TEA-100", "name": "Tea 100g", "price": "3.00", "stock": 5},
    {"sku": "COF-200", "name": "Coffee 200g", "price": "6.00", "stock": 1},
    {"sku": "CHOC-1", "name": "Dark Chocolate", "price": "4.50", "stock": 20},
    {"sku": "MUG-1", "name": "Mug", "price": "12.00", "stock": 3},
]


def _normalize_entry(entry):
    """Return a dict with keys: sku, name, price, stock, description, image_url"""
    sku = entry.get("sku") or entry.get("id") or entry.get("productId")
    name = entry.get("name") or entry.get("title") or ""

    raw_price = entry.get("price", entry.get("amount", 0))
    if entry.get("price_cents") is not None:
        raw_price = Decimal(str(entry["price_cents"])) / 100
    try:
        price = Decimal(str(raw_price)).quantize(Decimal("0.01"))
    except InvalidOperation:
        price = Decimal("0.00")

    try:
        stock = int(entry.get("stock", entry.get("quantity", 0)) or 0)
    except (TypeError, ValueError):
        stock = 0

    image = entry.get("image_url") or entry.get("image")
    if not image:
        imgs = entry.get("images") or []
        image = imgs[0] if isinstance(imgs, (list, tuple)) and imgs else None

    return {
        "sku": str(sku) if sku else None,
        "name": name,
        "price": price,
        "stock": max(stock, 0),
        "description": entry.get("description") or "",
        "image_url": image,
    }


def load_entries(path):
    if not path:
        return [_normalize_entry(e) for e in DEFAULT_PRODUCTS]

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        source_list = data["items"] if isinstance(data.get("items"), list) else list(data.values())
    elif isinstance(data, list):
        source_list = data
    else:
        source_list = []
    return [_normalize_entry(e) for e in source_list]


def seed(path=None):
    init_db()
    db = SessionLocal()
    try:
        users = UserRepository(db)
        for u in DEFAULT_USERS:
            if not users.get_by_email(u["email"]):
                users.create(u["email"], role=u["role"])
        db.commit()

        products = ProductRepository(db)
        svc = ProductService(db)
        created = 0
        for entry in load_entries(path):
            if not entry["sku"] or products.get_by_sku(entry["sku"]):
                continue
            svc.create_with_stock(entry, entry["stock"])
            created += 1
        print("Seeded products:", created)
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--file", "-f", default=None, help="Path to product json (list of product entries)")
    args = parser.parse_args()
    if args.file and not os.path.exists(args.file):
        print("File not found:", args.file)
        sys.exit(1)
    seed(args.file)
