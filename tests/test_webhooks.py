"""
Outbound webhook delivery (worker side).
"""
from datetime import timedelta

import httpx
import pytest
from sqlalchemy.orm import Session

from storefront.core.errors import NotificationDeliveryFailure
from storefront.db.database import utcnow
from storefront.models import EventStatus, OutboundEvent
from storefront.services import webhooks
from storefront.tasks import webhook_tasks

CREATED_URL = "http://hooks.test/order-created"


@pytest.fixture
def session():
    with Session(webhook_tasks.sync_engine) as s:
        yield s


@pytest.fixture
def created_hook(monkeypatch):
    monkeypatch.setattr(webhooks.settings, "WEBHOOK_URL_ORDER_CREATED", CREATED_URL)
    monkeypatch.setattr(webhooks.settings, "WEBHOOK_SECRET_ORDER_CREATED", "s3cret")


def _event(session, event_type=webhooks.ORDER_CREATED, **fields) -> OutboundEvent:
    event = OutboundEvent(event_type=event_type, order_id="order-1", payload={"order": {"id": "order-1"}}, **fields)
    session.add(event)
    session.commit()
    return event


def _http(status: int, seen: list[httpx.Request]) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status)

    return httpx.Client(transport=httpx.MockTransport(handler))


def test_delivered_with_idempotency_headers(session, created_hook):
    event = _event(session)
    seen: list[httpx.Request] = []

    status = webhooks.deliver_event(session, event.id, _http(200, seen))

    assert status == EventStatus.DELIVERED
    [request] = seen
    assert str(request.url) == CREATED_URL
    assert request.headers["x-idempotency-key"] == "order-1:order.created"
    assert request.headers["x-event-type"] == "order.created"
    assert request.headers["x-webhook-secret"] == "s3cret"
    session.refresh(event)
    assert event.attempts == 1
    assert event.delivered_at is not None


def test_delivered_event_is_not_sent_again(session, created_hook):
    event = _event(session)
    seen: list[httpx.Request] = []
    webhooks.deliver_event(session, event.id, _http(200, seen))
    webhooks.deliver_event(session, event.id, _http(200, seen))
    assert len(seen) == 1


def test_error_response_raises_and_records_attempt(session, created_hook):
    event = _event(session)
    with pytest.raises(NotificationDeliveryFailure):
        webhooks.deliver_event(session, event.id, _http(503, []))
    session.refresh(event)
    assert event.status == EventStatus.PENDING
    assert event.attempts == 1
    assert event.last_error == "HTTP 503"


def test_unreachable_endpoint_raises(session, created_hook):
    event = _event(session)

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NotificationDeliveryFailure):
        webhooks.deliver_event(session, event.id, httpx.Client(transport=httpx.MockTransport(handler)))
    session.refresh(event)
    assert "connection refused" in event.last_error


def test_missing_url_skips_without_sending(session, monkeypatch):
    monkeypatch.setattr(webhooks.settings, "WEBHOOK_URL_ORDER_ACCEPTED", "")
    event = _event(session, event_type=webhooks.ORDER_ACCEPTED)
    seen: list[httpx.Request] = []

    assert webhooks.deliver_event(session, event.id, _http(200, seen)) == EventStatus.SKIPPED
    assert seen == []


def test_mark_failed_only_touches_pending(session):
    pending = _event(session)
    delivered = _event(session, status=EventStatus.DELIVERED)
    webhooks.mark_failed(session, pending.id)
    webhooks.mark_failed(session, delivered.id)
    session.refresh(pending)
    session.refresh(delivered)
    assert pending.status == EventStatus.FAILED
    assert delivered.status == EventStatus.DELIVERED


def test_redelivery_sweep_requeues_stale_unattempted_events(session, monkeypatch):
    stale = _event(session, created_at=utcnow() - timedelta(minutes=10))
    _event(session)  # fresh: its own enqueue may still be in flight
    _event(session, created_at=utcnow() - timedelta(minutes=10), attempts=1)

    queued: list[str] = []
    monkeypatch.setattr(webhook_tasks.deliver_webhook, "delay", queued.append)

    assert webhook_tasks.redeliver_pending() == 1
    assert queued == [stale.id]
