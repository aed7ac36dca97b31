import logging
from typing import Optional

from celery.signals import worker_process_init, worker_process_shutdown
from kombu.exceptions import OperationalError as BrokerError
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import Database
from app.models.inventory_event import EventKind, EventStatus, InventoryEvent
from app.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)

# Opened per worker process by the signal handlers below
_worker_database: Optional[Database] = None


@worker_process_init.connect
def open_worker_database(**kwargs) -> None:
    global _worker_database
    settings = get_settings()
    _worker_database = Database(settings.DATABASE_URL, timeout=settings.STORE_TIMEOUT_SECONDS)


@worker_process_shutdown.connect
def close_worker_database(**kwargs) -> None:
    global _worker_database
    if _worker_database is not None:
        _worker_database.dispose()
        _worker_database = None


def get_worker_database() -> Database:
    if _worker_database is None:
        open_worker_database()
    return _worker_database


def process_event(db: Session, event_id: str, low_stock_threshold: int) -> dict:
    """
    Mark an inventory event as processed and raise a low-stock alert when a
    purchase leaves the product at or below `low_stock_threshold`.
    """
    event = db.query(InventoryEvent).filter(InventoryEvent.id == event_id).first()

    if not event:
        logger.error(f"Inventory event {event_id} not found")
        return {"status": "failed", "error": "Event not found"}

    if event.status == EventStatus.PROCESSED:
        return {"status": "skipped", "event_id": event_id}

    low_stock = (
        event.kind == EventKind.PURCHASE
        and event.resulting_stock <= low_stock_threshold
    )
    if low_stock:
        logger.warning(
            f"Low stock: product {event.product_id} ({event.product_name}) "
            f"has {event.resulting_stock} left"
        )

    event.status = EventStatus.PROCESSED
    db.commit()

    logger.info(f"Inventory event {event_id} processed")
    return {
        "status": "success",
        "event_id": event_id,
        "low_stock": low_stock,
    }


@celery_app.task(bind=True, name="process_inventory_event", ignore_result=True)
def process_inventory_event(self, event_id: str) -> dict:
    """
    Background task to process a recorded purchase or restock.

    Args:
        event_id: ID of the inventory event to process

    Returns:
        Dictionary with processing result
    """
    logger.info(f"Starting to process inventory event {event_id}")

    db = get_worker_database().session()
    try:
        return process_event(db, event_id, get_settings().LOW_STOCK_THRESHOLD)
    except OperationalError as e:
        db.rollback()
        logger.error(f"Error processing inventory event {event_id}: {e}")
        raise self.retry(exc=e, countdown=60, max_retries=3)
    finally:
        db.close()


def dispatch_inventory_event(event_id: str) -> bool:
    """
    Queue an already committed event for background processing.

    A broker outage leaves the event `pending`; the request that applied the
    mutation still succeeds. The task stores no result, so publishing never
    touches the result backend.
    """
    try:
        process_inventory_event.delay(event_id)
        return True
    except BrokerError as e:
        logger.warning(f"Could not queue inventory event {event_id}: {e}")
        return False
