"""
Webhook intake, deduplication and convergence with the verify callback
"""

import json
import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from storefront.api.v1.payments.razorpay_client import hmac_sha256_hex
from storefront.api.v1.payments.webhooks import (
    WebhookProcessor,
    gateway_order_id_of,
    replay_unprocessed_events,
)
from storefront.core.config import settings
from storefront.core.database import AsyncSessionLocal
from storefront.models import Order, OrderItem, OrderStatus, PaymentStatus, WebhookEvent
from storefront.models.base import utcnow


def _payment_event(event, gateway_order_id, payment_id="pay_1", **entity):
    return {
        "event": event,
        "payload": {
            "payment": {
                "entity": {"id": payment_id, "order_id": gateway_order_id, **entity}
            }
        },
    }


async def _deliver(client, payload, event_id=None, signature=None):
    body = json.dumps(payload).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "X-Razorpay-Signature": signature or hmac_sha256_hex(settings.RAZORPAY_WEBHOOK_SECRET, body),
    }
    if event_id:
        headers["X-Razorpay-Event-Id"] = event_id
    return await client.post("/api/v1/payments/webhook", content=body, headers=headers)


async def _load_order(order_id):
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(Order)
            .options(selectinload(Order.items), selectinload(Order.payment))
            .where(Order.id == uuid.UUID(order_id))
        )
        return result.scalar_one()


async def _events():
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(WebhookEvent).order_by(WebhookEvent.created_at))
        return list(result.scalars().all())


async def _count(model):
    async with AsyncSessionLocal() as session:
        return await session.scalar(select(func.count(model.id)))


@pytest.fixture
async def pending_order(client, make_product, add_to_cart, create_address, guest_headers):
    headers = guest_headers()
    await add_to_cart(headers, await make_product(price="500.00"), quantity=2)
    address = await create_address(headers)
    response = await client.post(
        "/api/v1/checkout",
        json={"addressId": address["id"], "paymentMethod": "upi"},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    return headers, response.json()


def test_gateway_order_id_falls_back_to_order_entity():
    payload = {"order": {"entity": {"id": "order_9"}}}

    assert gateway_order_id_of(payload) == "order_9"
    assert gateway_order_id_of(_payment_event("x", "order_1")["payload"]) == "order_1"
    assert gateway_order_id_of({}) is None


async def test_invalid_signature_is_logged_but_ignored(client, pending_order):
    _, checkout = pending_order
    payload = _payment_event("payment.captured", checkout["razorpayOrderId"])

    response = await _deliver(client, payload, event_id="evt_1", signature="forged")

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_SIGNATURE"

    events = await _events()
    assert len(events) == 1
    assert events[0].verified is False
    assert events[0].processed is False
    assert events[0].event_type == "payment.captured"

    order = await _load_order(checkout["orderId"])
    assert order.status == OrderStatus.PENDING
    assert order.payment.status == PaymentStatus.PENDING


async def test_captured_finalizes_order(client, pending_order):
    headers, checkout = pending_order
    payload = _payment_event("payment.captured", checkout["razorpayOrderId"], method="card")

    response = await _deliver(client, payload, event_id="evt_1")

    assert response.status_code == 200
    assert response.json() == {"success": True}

    order = await _load_order(checkout["orderId"])
    assert order.status == OrderStatus.CONFIRMED
    assert order.cart_snapshot is None
    assert len(order.items) == 1
    assert order.payment.status == PaymentStatus.CAPTURED
    assert order.payment.gateway_payment_id == "pay_1"
    assert order.payment.method == "card"

    events = await _events()
    assert events[0].verified is True
    assert events[0].processed is True
    assert events[0].processed_at is not None

    cart = (await client.get("/api/v1/cart", headers=headers)).json()
    assert cart["items"] == []


async def test_order_paid_event_finalizes_order(client, pending_order):
    _, checkout = pending_order
    payload = {
        "event": "order.paid",
        "payload": {"order": {"entity": {"id": checkout["razorpayOrderId"], "status": "paid"}}},
    }

    await _deliver(client, payload, event_id="evt_1")

    order = await _load_order(checkout["orderId"])
    assert order.status == OrderStatus.CONFIRMED
    assert order.payment.status == PaymentStatus.CAPTURED


async def test_duplicate_event_is_processed_once(client, pending_order):
    _, checkout = pending_order
    payload = _payment_event("payment.captured", checkout["razorpayOrderId"])

    first = await _deliver(client, payload, event_id="evt_1")
    second = await _deliver(client, payload, event_id="evt_1")

    assert first.status_code == 200
    assert second.status_code == 200
    assert await _count(OrderItem) == 1
    events = await _events()
    assert len(events) == 2
    assert all(event.processed for event in events)


async def test_webhook_and_verify_converge(client, pending_order):
    _, checkout = pending_order
    gateway_order_id = checkout["razorpayOrderId"]

    await _deliver(client, _payment_event("payment.captured", gateway_order_id), event_id="evt_1")
    response = await client.post(
        "/api/v1/payments/verify",
        json={
            "razorpay_order_id": gateway_order_id,
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": hmac_sha256_hex(
                settings.RAZORPAY_KEY_SECRET, f"{gateway_order_id}|pay_1"
            ),
        },
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Payment already verified"
    assert await _count(OrderItem) == 1


async def test_failure_after_capture_does_not_regress(client, pending_order):
    _, checkout = pending_order
    gateway_order_id = checkout["razorpayOrderId"]

    await _deliver(client, _payment_event("payment.captured", gateway_order_id), event_id="evt_1")
    await _deliver(
        client,
        _payment_event("payment.failed", gateway_order_id, error_description="Bank declined"),
        event_id="evt_2",
    )

    order = await _load_order(checkout["orderId"])
    assert order.payment.status == PaymentStatus.CAPTURED
    assert order.payment.failure_reason is None
    assert order.status == OrderStatus.CONFIRMED


async def test_failure_cancels_pending_order(client, pending_order):
    headers, checkout = pending_order

    await _deliver(
        client,
        _payment_event(
            "payment.failed", checkout["razorpayOrderId"], error_description="Bank declined"
        ),
        event_id="evt_1",
    )

    order = await _load_order(checkout["orderId"])
    assert order.status == OrderStatus.CANCELLED
    assert order.cancelled_at is not None
    assert order.payment.status == PaymentStatus.FAILED
    assert order.payment.failure_reason == "Bank declined"
    assert order.items == []

    cart = (await client.get("/api/v1/cart", headers=headers)).json()
    assert cart["totalItems"] == 2


async def test_capture_after_failure_still_confirms(client, pending_order):
    _, checkout = pending_order
    gateway_order_id = checkout["razorpayOrderId"]

    await _deliver(client, _payment_event("payment.failed", gateway_order_id), event_id="evt_1")
    await _deliver(
        client, _payment_event("payment.captured", gateway_order_id, "pay_2"), event_id="evt_2"
    )

    order = await _load_order(checkout["orderId"])
    assert order.payment.status == PaymentStatus.CAPTURED
    assert order.status == OrderStatus.CONFIRMED
    assert len(order.items) == 1


async def test_authorized_then_captured(client, pending_order):
    _, checkout = pending_order
    gateway_order_id = checkout["razorpayOrderId"]

    await _deliver(client, _payment_event("payment.authorized", gateway_order_id), event_id="evt_1")

    order = await _load_order(checkout["orderId"])
    assert order.payment.status == PaymentStatus.AUTHORIZED
    assert order.status == OrderStatus.PENDING

    await _deliver(client, _payment_event("payment.captured", gateway_order_id), event_id="evt_2")

    order = await _load_order(checkout["orderId"])
    assert order.payment.status == PaymentStatus.CAPTURED
    assert order.status == OrderStatus.CONFIRMED


async def test_unknown_event_type_is_acknowledged(client):
    response = await _deliver(client, {"event": "refund.created", "payload": {}}, event_id="evt_1")

    assert response.status_code == 200
    events = await _events()
    assert events[0].processed is True


async def test_unknown_gateway_order_is_acknowledged(client):
    response = await _deliver(
        client, _payment_event("payment.captured", "order_missing"), event_id="evt_1"
    )

    assert response.status_code == 200
    assert await _count(Order) == 0


async def test_replay_processes_stranded_events(client, pending_order):
    _, checkout = pending_order
    await _deliver(
        client, _payment_event("payment.authorized", checkout["razorpayOrderId"]), event_id="evt_0"
    )

    # Simulate a delivery that was stored but never dispatched
    payload = json.dumps(_payment_event("payment.captured", checkout["razorpayOrderId"]))
    async with AsyncSessionLocal() as session:
        session.add(WebhookEvent(
            event_id="evt_1",
            event_type="payment.captured",
            payload=payload,
            signature="sig",
            verified=True,
        ))
        await session.commit()

    async with AsyncSessionLocal() as session:
        replayed = await replay_unprocessed_events(session, limit=10, min_age_seconds=0)

    assert replayed == 1
    order = await _load_order(checkout["orderId"])
    assert order.status == OrderStatus.CONFIRMED

    async with AsyncSessionLocal() as session:
        assert await replay_unprocessed_events(session, limit=10, min_age_seconds=0) == 0


async def test_replay_skips_unverified_and_recent_events(client):
    async with AsyncSessionLocal() as session:
        session.add(WebhookEvent(event_id="evt_1", payload="{}", verified=False))
        session.add(WebhookEvent(event_id="evt_2", payload="{}", verified=True))
        await session.commit()

    async with AsyncSessionLocal() as session:
        assert await replay_unprocessed_events(session, limit=10, min_age_seconds=3600) == 0
        assert await replay_unprocessed_events(session, limit=10, min_age_seconds=0) == 1


async def test_malformed_sections_are_acknowledged(client, pending_order):
    _, checkout = pending_order
    payload = {"event": "payment.captured", "payload": {"payment": "oops", "order": ["x"]}}

    response = await _deliver(client, payload, event_id="evt_1")

    assert response.status_code == 200
    assert gateway_order_id_of(payload["payload"]) is None
    order = await _load_order(checkout["orderId"])
    assert order.status == OrderStatus.PENDING
    events = await _events()
    assert events[0].processed is True


async def _store_event(event_id, payload, age_seconds):
    async with AsyncSessionLocal() as session:
        session.add(WebhookEvent(
            event_id=event_id,
            event_type=payload.get("event") if isinstance(payload, dict) else None,
            payload=json.dumps(payload),
            verified=True,
            created_at=utcnow() - timedelta(seconds=age_seconds),
        ))
        await session.commit()


async def test_replay_survives_malformed_event(client, pending_order):
    _, checkout = pending_order
    await _store_event("evt_1", {"event": "payment.captured", "payload": {"payment": "oops"}}, 20)
    await _store_event("evt_2", _payment_event("payment.captured", checkout["razorpayOrderId"]), 10)

    async with AsyncSessionLocal() as session:
        replayed = await replay_unprocessed_events(session, limit=10, min_age_seconds=0)

    assert replayed == 2
    order = await _load_order(checkout["orderId"])
    assert order.status == OrderStatus.CONFIRMED


async def test_replay_continues_after_handler_crash(client, pending_order, monkeypatch):
    _, checkout = pending_order
    gateway_order_id = checkout["razorpayOrderId"]

    async def explode(self, payload):
        raise RuntimeError("handler bug")

    monkeypatch.setattr(WebhookProcessor, "handle_payment_authorized", explode)
    await _store_event("evt_1", _payment_event("payment.authorized", gateway_order_id), 20)
    await _store_event("evt_2", _payment_event("payment.captured", gateway_order_id), 10)

    async with AsyncSessionLocal() as session:
        replayed = await replay_unprocessed_events(session, limit=10, min_age_seconds=0)

    assert replayed == 1
    order = await _load_order(checkout["orderId"])
    assert order.status == OrderStatus.CONFIRMED
    processed = {event.event_id: event.processed for event in await _events()}
    assert processed == {"evt_1": False, "evt_2": True}
