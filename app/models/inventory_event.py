import enum

from sqlalchemy import Column, DateTime, Enum, Float, Integer, String, UniqueConstraint

from app.database import Base
from app.models.product import new_id, utcnow


class EventKind(str, enum.Enum):
    """Enum for inventory event kinds."""
    PURCHASE = "purchase"
    RESTOCK = "restock"


class EventStatus(str, enum.Enum):
    """Enum for background processing status."""
    PENDING = "pending"
    PROCESSED = "processed"


def _values(enum_cls):
    return [member.value for member in enum_cls]


class InventoryEvent(Base):
    """
    Persisted record of one applied purchase or restock.

    Written in the same transaction as the quantity change, so an event
    exists if and only if the mutation was applied. A receipt returned to
    the caller is rebuilt from this row, which also makes replays of an
    idempotency key return the original receipt.

    `product_id` is deliberately not a foreign key: products are hard
    deleted, and their trail stays.
    """
    __tablename__ = "inventory_events"

    id = Column(String(36), primary_key=True, default=new_id)
    kind = Column(Enum(EventKind, values_callable=_values), nullable=False)
    product_id = Column(String(36), nullable=False, index=True)
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    previous_stock = Column(Integer, nullable=False)
    resulting_stock = Column(Integer, nullable=False)
    user_id = Column(String(36), nullable=False, index=True)
    idempotency_key = Column(String(64), nullable=True)
    status = Column(
        Enum(EventStatus, values_callable=_values),
        nullable=False,
        default=EventStatus.PENDING,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "idempotency_key", name="uq_event_user_idempotency_key"),
    )

    @property
    def total_price(self) -> float:
        return round(self.unit_price * self.quantity, 2)

    def __repr__(self):
        return f"<InventoryEvent(id={self.id}, kind='{self.kind}', product_id={self.product_id})>"
