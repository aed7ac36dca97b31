import enum

from sqlalchemy import Column, DateTime, Enum, String

from app.database import Base
from app.models.product import new_id, utcnow


class UserRole(str, enum.Enum):
    """Enum for user roles."""
    ADMIN = "admin"
    CUSTOMER = "customer"


class User(Base):
    """
    Authentication principal.

    The password is only ever stored as a salted hash in `password_hash`
    and is never part of any response schema.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(320), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(
        Enum(UserRole, values_callable=lambda roles: [r.value for r in roles]),
        nullable=False,
        default=UserRole.CUSTOMER,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
