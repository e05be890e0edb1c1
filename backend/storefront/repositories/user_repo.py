from typing import Optional

from sqlalchemy.orm import Session

from storefront.models.user import User


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def create(self, email: str, role: str = "customer") -> User:
        u = User(email=email, role=role)
        self.db.add(u)
        self.db.flush()
        return u
