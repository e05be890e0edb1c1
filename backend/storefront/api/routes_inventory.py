from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.errors import to_http
from storefront.db import get_db
from storefront.schemas.product_schema import InventoryOut
from storefront.services.inventory_service import InventoryException, InventoryService

router = APIRouter(prefix="/api/inventory", tags=["inventory"])


@router.get("/{product_id}")
def get_stock(product_id: int, db: Session = Depends(get_db)):
    try:
        inv = InventoryService(db).get_stock(product_id)
    except InventoryException as e:
        raise to_http(e)
    return InventoryOut.model_validate(inv).model_dump()
