from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import require_admin
from storefront.api.errors import to_http
from storefront.config import settings
from storefront.db import get_db
from storefront.models.user import User
from storefront.schemas.order_schema import OrderOut, OrderPage
from storefront.services.order_service import OrderService, OrderServiceException

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/orders", response_model=OrderPage)
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    user_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return OrderService(db).list_orders(page=page, limit=limit, user_id=user_id, status=status)


@router.get("/orders/{order_id}", response_model=OrderOut)
def order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        return OrderService(db).get_order(order_id)
    except OrderServiceException as e:
        raise to_http(e)
