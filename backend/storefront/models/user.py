from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from storefront.db import Base

ROLES = ("customer", "admin")


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(String(16), nullable=False, default="customer")  # customer, admin
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_public(self) -> dict:
        return {"id": self.id, "email": self.email, "role": self.role}

    def __repr__(self):
        return f"<User id={self.id} email={self.email}>"
