import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Float, Integer, String, Text

from app.database import Base

# Largest stock an INTEGER column holds on every supported store
MAX_QUANTITY = 2_147_483_647


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Product(Base):
    """
    Product model representing a sweet available for sale.

    Attributes:
        id: Opaque unique identifier (UUID), immutable
        name: Product name
        category: Product category (e.g. "Chocolate")
        price: Unit price (must be non-negative)
        quantity: Quantity on hand (must be non-negative)
        description: Free text description, may be empty
        image_url: Optional image reference
        created_at: Timestamp when product was created
        updated_at: Timestamp when product was last modified
    """
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False, index=True)
    category = Column(String(100), nullable=False, index=True)
    price = Column(Float, nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=False, default="")
    image_url = Column(String(2048), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    # Database-level constraints to ensure data integrity
    __table_args__ = (
        CheckConstraint("price >= 0", name="check_price_non_negative"),
        CheckConstraint("quantity >= 0", name="check_quantity_non_negative"),
    )

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', quantity={self.quantity})>"
