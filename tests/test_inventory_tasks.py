"""Tests for background processing of inventory events."""
from unittest.mock import patch

from kombu.exceptions import OperationalError as BrokerError

from app.models.inventory_event import EventStatus, InventoryEvent
from app.tasks.inventory_tasks import dispatch_inventory_event, process_event


def purchase(client, product_id, quantity, headers):
    return client.post(
        f"/api/v1/products/{product_id}/purchase",
        json={"quantity": quantity},
        headers=headers,
    )


def latest_event(db_session):
    return db_session.query(InventoryEvent).order_by(InventoryEvent.created_at.desc()).first()


def test_purchase_records_pending_event(client, db_session, make_product, customer_user, customer_headers, dispatched_events):
    product = make_product(quantity=10)

    purchase(client, product["id"], 3, customer_headers)

    event = latest_event(db_session)
    assert event.status == EventStatus.PENDING
    assert event.user_id == customer_user.id
    assert (event.previous_stock, event.resulting_stock) == (10, 7)
    dispatched_events.assert_called_once_with(event.id)


def test_process_event_marks_processed(client, db_session, make_product, customer_headers):
    product = make_product(quantity=50)
    purchase(client, product["id"], 1, customer_headers)
    event = latest_event(db_session)

    result = process_event(db_session, event.id, low_stock_threshold=5)

    assert result == {"status": "success", "event_id": event.id, "low_stock": False}
    db_session.refresh(event)
    assert event.status == EventStatus.PROCESSED


def test_process_event_flags_low_stock(client, db_session, make_product, customer_headers, caplog):
    product = make_product(name="Rare Praline", quantity=6)
    purchase(client, product["id"], 2, customer_headers)
    event = latest_event(db_session)

    with caplog.at_level("WARNING", logger="app.tasks.inventory_tasks"):
        result = process_event(db_session, event.id, low_stock_threshold=5)

    assert result["low_stock"] is True
    assert "Low stock" in caplog.text
    assert "Rare Praline" in caplog.text


def test_process_event_is_idempotent(client, db_session, make_product, customer_headers):
    product = make_product()
    purchase(client, product["id"], 1, customer_headers)
    event = latest_event(db_session)

    process_event(db_session, event.id, low_stock_threshold=5)
    result = process_event(db_session, event.id, low_stock_threshold=5)

    assert result["status"] == "skipped"


def test_process_unknown_event(db_session):
    assert process_event(db_session, "missing", low_stock_threshold=5)["status"] == "failed"


def test_dispatch_survives_broker_outage():
    with patch(
        "app.tasks.inventory_tasks.process_inventory_event.delay",
        side_effect=BrokerError("broker down"),
    ):
        assert dispatch_inventory_event("some-event") is False


def test_purchase_succeeds_when_broker_is_down(client, make_product, customer_headers, dispatched_events):
    dispatched_events.side_effect = BrokerError("broker down")
    product = make_product(quantity=3)

    response = purchase(client, product["id"], 1, customer_headers)

    assert response.status_code == 200
    assert response.json()["purchase"]["remaining_stock"] == 2
