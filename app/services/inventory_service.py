import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.database import store_guard
from app.exceptions import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from app.models.inventory_event import EventKind, InventoryEvent
from app.models.product import MAX_QUANTITY, Product, utcnow
from app.models.user import User
from app.schemas.inventory import PurchaseReceipt, RestockReceipt
from app.services.product_service import ProductService
from app.utils.cache import CacheService

logger = logging.getLogger(__name__)


@dataclass
class InventoryResult:
    event: InventoryEvent
    product: Product
    replayed: bool = False


class InventoryService:
    """
    Purchase and restock with atomic quantity changes.

    RACE CONDITION HANDLING STRATEGY:
    =================================
    Each mutation is a single conditional UPDATE issued against the store:

        UPDATE products
        SET quantity = quantity - :n, updated_at = :now
        WHERE id = :product_id AND quantity >= :n

    The check and the write happen in one statement, so the store's own
    row locking (PostgreSQL) or write lock (SQLite) serializes concurrent
    purchases of the same product. When several users race for the last
    units, only the updates whose condition still holds affect a row; the
    others affect zero rows and fail with InsufficientStockError. Products
    with different ids never contend for the same row.

    Quantity is never read first and written back later, and never taken
    from a cache.

    Every applied mutation inserts an InventoryEvent in the same
    transaction. An optional idempotency key, unique per user, lets a client
    retry after a timeout without applying the mutation twice.
    """

    def __init__(self, db: Session, cache: Optional[CacheService] = None):
        self.db = db
        self.cache = cache

    def purchase(
        self,
        product_id: str,
        quantity: int,
        user: User,
        idempotency_key: Optional[str] = None,
    ) -> InventoryResult:
        """
        Remove `quantity` units from stock.

        Raises:
            NotFoundError: If the product doesn't exist
            InsufficientStockError: If not enough stock available
            ConflictError: If the idempotency key belongs to another request
        """
        with store_guard(self.db, "purchase"):
            if idempotency_key:
                replay = self._replay(user, idempotency_key, EventKind.PURCHASE, product_id, quantity)
                if replay:
                    return replay

            result = self.db.execute(
                update(Product)
                .where(Product.id == product_id, Product.quantity >= quantity)
                .values(quantity=Product.quantity - quantity, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )

            if result.rowcount != 1:
                self.db.rollback()
                product = self.db.get(Product, product_id, populate_existing=True)
                if not product:
                    raise NotFoundError(f"Product with ID {product_id} not found")
                logger.warning(
                    f"Rejected purchase of {quantity} x product {product_id}: "
                    f"only {product.quantity} in stock"
                )
                raise InsufficientStockError(
                    f"Insufficient stock. Available: {product.quantity}, Requested: {quantity}"
                )

            product = self.db.get(Product, product_id, populate_existing=True)
            event = InventoryEvent(
                kind=EventKind.PURCHASE,
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
                unit_price=product.price,
                previous_stock=product.quantity + quantity,
                resulting_stock=product.quantity,
                user_id=user.id,
                idempotency_key=idempotency_key,
            )
            outcome = self._commit(event, product, user, idempotency_key)

        self._invalidate(product_id)
        if not outcome.replayed:
            logger.info(
                f"Purchase {event.id}: {quantity} x product {product_id} by user {user.id}, "
                f"{event.resulting_stock} left"
            )
        return outcome

    def restock(
        self,
        product_id: str,
        quantity: int,
        user: User,
        idempotency_key: Optional[str] = None,
    ) -> InventoryResult:
        """
        Add `quantity` units to stock.

        Raises:
            NotFoundError: If the product doesn't exist
            ValidationError: If the new stock would exceed MAX_QUANTITY
            ConflictError: If the idempotency key belongs to another request
        """
        with store_guard(self.db, "restock"):
            if idempotency_key:
                replay = self._replay(user, idempotency_key, EventKind.RESTOCK, product_id, quantity)
                if replay:
                    return replay

            result = self.db.execute(
                update(Product)
                .where(Product.id == product_id, Product.quantity <= MAX_QUANTITY - quantity)
                .values(quantity=Product.quantity + quantity, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )

            if result.rowcount != 1:
                self.db.rollback()
                product = self.db.get(Product, product_id, populate_existing=True)
                if not product:
                    raise NotFoundError(f"Product with ID {product_id} not found")
                raise ValidationError(
                    f"Restock would exceed maximum stock of {MAX_QUANTITY}. "
                    f"Current: {product.quantity}, Requested: {quantity}"
                )

            product = self.db.get(Product, product_id, populate_existing=True)
            event = InventoryEvent(
                kind=EventKind.RESTOCK,
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
                unit_price=product.price,
                previous_stock=product.quantity - quantity,
                resulting_stock=product.quantity,
                user_id=user.id,
                idempotency_key=idempotency_key,
            )
            outcome = self._commit(event, product, user, idempotency_key)

        self._invalidate(product_id)
        if not outcome.replayed:
            logger.info(
                f"Restock {event.id}: +{quantity} x product {product_id} by user {user.id}, "
                f"{event.resulting_stock} now in stock"
            )
        return outcome

    def _commit(
        self,
        event: InventoryEvent,
        product: Product,
        user: User,
        idempotency_key: Optional[str],
    ) -> InventoryResult:
        self.db.add(event)
        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent request with the same key committed first; our
            # quantity change is rolled back with the event.
            self.db.rollback()
            if not idempotency_key:
                raise
            replay = self._replay(user, idempotency_key, event.kind, event.product_id, event.quantity)
            if replay is None:
                raise
            return replay

        self.db.refresh(event)
        self.db.refresh(product)
        return InventoryResult(event=event, product=product)

    def _replay(
        self,
        user: User,
        idempotency_key: str,
        kind: EventKind,
        product_id: str,
        quantity: int,
    ) -> Optional[InventoryResult]:
        event = (
            self.db.query(InventoryEvent)
            .filter(
                InventoryEvent.user_id == user.id,
                InventoryEvent.idempotency_key == idempotency_key,
            )
            .first()
        )
        if event is None:
            return None

        if event.kind != kind or event.product_id != product_id or event.quantity != quantity:
            raise ConflictError("Idempotency key already used for a different request")

        product = self.db.get(Product, product_id, populate_existing=True)
        if not product:
            raise NotFoundError(f"Product with ID {product_id} not found")

        logger.info(f"Replaying {kind.value} {event.id} for idempotency key {idempotency_key}")
        return InventoryResult(event=event, product=product, replayed=True)

    def _invalidate(self, product_id: str) -> None:
        if self.cache:
            self.cache.delete(ProductService.CACHE_PREFIX, product_id)


def purchase_receipt(event: InventoryEvent) -> PurchaseReceipt:
    return PurchaseReceipt(
        product_id=event.product_id,
        product_name=event.product_name,
        quantity=event.quantity,
        unit_price=event.unit_price,
        total_price=event.total_price,
        remaining_stock=event.resulting_stock,
    )


def restock_receipt(event: InventoryEvent) -> RestockReceipt:
    return RestockReceipt(
        product_id=event.product_id,
        product_name=event.product_name,
        added_quantity=event.quantity,
        previous_stock=event.previous_stock,
        new_stock=event.resulting_stock,
    )
