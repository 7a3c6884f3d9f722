import json
from decimal import Decimal

import httpx
import pytest
from structlog.testing import capture_logs

from bazaar.checkout import CheckoutReceipt, Dispatcher, WebhookNotifier
from bazaar.domain import BillingResult

RECEIPT = CheckoutReceipt(
    order_id="order_1",
    store_id="s1",
    billing=BillingResult(
        subtotal=Decimal("400.00"),
        shipping=Decimal("50.00"),
        discount=Decimal("0.00"),
        gst=Decimal("72.00"),
        total=Decimal("522.00"),
    ),
    payment_intent_id="pi_1",
    fingerprint="fp",
    amount=52200,
    currency="INR",
)


class Broken:
    async def order_created(self, receipt):
        raise ConnectionError("webhook unreachable")


async def test_webhook_posts_order_event():
    sent: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(204)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        await WebhookNotifier("https://hooks.test/orders", client=client).order_created(RECEIPT)

    (request,) = sent
    assert json.loads(request.content) == {
        "event": "order.created",
        "order_id": "order_1",
        "store_id": "s1",
        "total": "522.00",
        "currency": "INR",
    }


async def test_webhook_rejection_raises():
    transport = httpx.MockTransport(lambda request: httpx.Response(500))

    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(httpx.HTTPStatusError):
            await WebhookNotifier("https://hooks.test/orders", client=client).order_created(RECEIPT)


async def test_dispatcher_logs_and_swallows_failures():
    dispatcher = Dispatcher(Broken())

    with capture_logs() as logs:
        dispatcher.order_created(RECEIPT)
        await dispatcher.drain()

    (entry,) = [e for e in logs if e["event"] == "order_notification_failed"]
    assert entry["order_id"] == "order_1"
    assert entry["error_type"] == "ConnectionError"
    assert entry["log_level"] == "warning"


async def test_drain_without_pending_work():
    await Dispatcher().drain()
