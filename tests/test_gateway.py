import json

import httpx
import pytest

from bazaar.config import GatewaySettings
from bazaar.errors import UpstreamError
from bazaar.gateway import HttpGateway, PaymentIntentRequest, Transfer

SETTINGS = (
    GatewaySettings(base_url="https://gateway.test/v1")
    .with_credentials("key_id", "key_secret")
    .with_retries(2, delay=0)
)

REQUEST = PaymentIntentRequest(
    amount=52200,
    currency="INR",
    receipt="order_1",
    transfers=(Transfer("acc_s1", 52200, "INR"),),
    notes={"store_id": "s1"},
)


class Script:
    """Answers requests from a list of responses or exceptions, in order."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        if isinstance(answer, Exception):
            raise answer
        return answer


def gateway(script: Script) -> HttpGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(script))
    return HttpGateway(SETTINGS, client=client)


def created(**body):
    return httpx.Response(200, json={"id": "pg_1", "status": "created", **body})


async def test_creates_intent_with_transfers_and_idempotency_key():
    script = Script(created(amount=52200, currency="INR"))

    intent = await gateway(script).create_payment_intent(REQUEST)

    assert intent.intent_id == "pg_1"
    assert intent.amount == 52200
    (sent,) = script.requests
    assert sent.url == "https://gateway.test/v1/orders"
    assert sent.headers["Idempotency-Key"] == "order_1"
    assert sent.headers["Authorization"].startswith("Basic ")
    body = json.loads(sent.content)
    assert body["amount"] == 52200
    assert body["transfers"] == [{"account": "acc_s1", "amount": 52200, "currency": "INR"}]
    assert body["notes"] == {"store_id": "s1"}


async def test_platform_intent_has_no_transfers():
    script = Script(created())
    await gateway(script).create_payment_intent(
        PaymentIntentRequest(amount=100, currency="INR", receipt="order_2")
    )

    assert "transfers" not in json.loads(script.requests[0].content)


async def test_server_errors_are_retried_with_the_same_key():
    script = Script(httpx.Response(503), httpx.Response(429), created())

    intent = await gateway(script).create_payment_intent(REQUEST)

    assert intent.intent_id == "pg_1"
    assert len(script.requests) == 3
    assert {r.headers["Idempotency-Key"] for r in script.requests} == {"order_1"}


async def test_transport_failures_exhaust_retries():
    script = Script(httpx.ConnectError("refused"))

    with pytest.raises(UpstreamError) as exc:
        await gateway(script).create_payment_intent(REQUEST)

    assert exc.value.retryable
    assert len(script.requests) == 3


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(400, json={"error": "bad amount"}),
        httpx.Response(200, json={"status": "created"}),
        httpx.Response(200, content=b"<html>"),
    ],
    ids=["rejected", "missing-id", "invalid-json"],
)
async def test_invalid_answers_fail_without_retry(response):
    script = Script(response)

    with pytest.raises(UpstreamError) as exc:
        await gateway(script).create_payment_intent(REQUEST)

    assert not exc.value.retryable
    assert len(script.requests) == 1
