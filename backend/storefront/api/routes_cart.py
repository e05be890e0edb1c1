from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user
from storefront.api.errors import to_http
from storefront.db import get_db
from storefront.models.user import User
from storefront.services.cart_service import CartException, CartItemNotFound, CartService

router = APIRouter(prefix="/api/cart", tags=["cart"])


class AddItemIn(BaseModel):
    product_id: int
    quantity: int = 1


class UpdateItemIn(BaseModel):
    quantity: int


def _item_out(item):
    return {"id": item.id, "product_id": item.product_id, "quantity": item.quantity}


@router.get("", summary="Get cart")
def get_cart(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return CartService(db).get_cart(user.id)


@router.get("/count", summary="Number of units in cart")
def get_item_count(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {"count": CartService(db).get_item_count(user.id)}


@router.get("/validate", summary="Check cart lines against stock")
def validate_stock(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return CartService(db).validate_stock(user.id)


@router.post("/items", summary="Add item to cart", status_code=201)
def add_item(
    payload: AddItemIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        item = CartService(db).add_item(user.id, payload.product_id, payload.quantity)
    except CartException as e:
        raise to_http(e)
    return {"message": "Item added to cart", "item": _item_out(item)}


@router.put("/items/{product_id}", summary="Update item quantity")
def update_item(
    product_id: int,
    payload: UpdateItemIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        item = CartService(db).update_item_quantity(user.id, product_id, payload.quantity)
    except CartException as e:
        raise to_http(e)
    if item is None:
        return {"message": "Item removed from cart"}
    return {"message": "Item quantity updated", "item": _item_out(item)}


@router.delete("/items/{product_id}", summary="Remove item")
def remove_item(
    product_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not CartService(db).remove_item(user.id, product_id):
        raise to_http(CartItemNotFound(product_id))
    return {"message": "Item removed from cart"}


@router.delete("", summary="Clear cart")
def clear_cart(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    CartService(db).clear_cart(user.id)
    return {"message": "Cart cleared"}
