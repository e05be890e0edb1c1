from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from storefront.db import get_db
from storefront.models.user import User
from storefront.repositories.user_repo import UserRepository


def get_current_user(
    x_user_id: Optional[int] = Header(None, alias="X-User-Id"),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the caller. Identity is verified upstream (gateway / auth
    service); this layer only trusts the forwarded user id.
    """
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    user = UserRepository(db).get(x_user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return user
