from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user
from storefront.api.errors import to_http
from storefront.config import settings
from storefront.db import get_db
from storefront.models.user import User
from storefront.schemas.order_schema import OrderOut, OrderPage
from storefront.services.order_service import OrderService, OrderServiceException
from storefront.utils.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["orders"])


@router.post("/checkout", summary="Place an order from the cart", response_model=OrderOut, status_code=201)
def checkout(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    svc = OrderService(db)
    try:
        return svc.checkout(user.id)
    except OrderServiceException as e:
        raise to_http(e)
    except Exception:
        log.exception("Checkout failed for user %s", user.id)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("", summary="My orders", response_model=OrderPage)
def my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return OrderService(db).list_orders(page=page, limit=limit, user_id=user.id)


@router.get("/{order_id}", summary="My order", response_model=OrderOut)
def my_order(
    order_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        return OrderService(db).get_order(order_id, user_id=user.id)
    except OrderServiceException as e:
        raise to_http(e)
