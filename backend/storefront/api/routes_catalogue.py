from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user, require_admin
from storefront.api.errors import to_http
from storefront.db import get_db
from storefront.models.user import User
from storefront.schemas.product_schema import (
    InventoryOut,
    PriceIn,
    ProductCreateIn,
    ProductOut,
    RestockIn,
)
from storefront.services.cart_service import ProductNotFound
from storefront.services.inventory_service import InventoryException, InventoryService
from storefront.services.product_service import ProductService

router = APIRouter(tags=["catalogue"])


@router.get("", summary="List products")
def list_products(
    q: Optional[str] = Query(None, description="search term"),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
):
    items, total = ProductService(db).list_products(q=q, page=page, size=size)
    return {
        "items": [ProductOut.model_validate(p).model_dump(mode="json") for p in items],
        "total": total,
    }


@router.post("", summary="Create product with initial stock", status_code=201)
def create_product(
    payload: ProductCreateIn,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    data = payload.model_dump(exclude={"initial_stock"})
    p = ProductService(db).create_with_stock(data, payload.initial_stock)
    return ProductOut.model_validate(p).model_dump(mode="json")


@router.get("/{product_id}", summary="Get product")
def get_product(product_id: int, db: Session = Depends(get_db)):
    try:
        p = ProductService(db).get_product(product_id)
    except ProductNotFound as e:
        raise to_http(e)
    return ProductOut.model_validate(p).model_dump(mode="json")


@router.patch("/{product_id}/price", summary="Change product price")
def set_price(
    product_id: int,
    payload: PriceIn,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        p = ProductService(db).set_price(product_id, payload.price)
    except ProductNotFound as e:
        raise to_http(e)
    return ProductOut.model_validate(p).model_dump(mode="json")


@router.post("/{product_id}/buy", summary="Buy one unit")
def buy(
    product_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        inv = InventoryService(db).decrease_stock(product_id, 1)
    except InventoryException as e:
        raise to_http(e)
    return InventoryOut.model_validate(inv).model_dump()


@router.post("/{product_id}/restock", summary="Restock product")
def restock(
    product_id: int,
    payload: RestockIn,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        inv = InventoryService(db).add_stock(product_id, payload.quantity)
    except InventoryException as e:
        raise to_http(e)
    return {"message": "Restock successful", "new_stock_level": inv.quantity}
