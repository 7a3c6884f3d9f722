import asyncio
from contextlib import asynccontextmanager
from decimal import Decimal

import httpx
import pytest

from bazaar.api import create_app
from bazaar.domain import OfferType

from tests.factories import condition, offer, product, rule, store

ADDRESS = {
    "street1": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "postal_code": "560001",
    "country": "India",
}
ABROAD = {**ADDRESS, "city": "Berlin", "state": "Berlin", "country": "Germany"}
RECIPIENT = {"name": "Asha Rao", "phone": "+91 98450 00000"}


@pytest.fixture
async def catalog_rows(seeded):
    await seeded(
        stores=[store("s1", name="Tea House"), store("s2", platform_owned=True, account=None)],
        products=[
            product("p1", price="200", tax="18"),
            product("p2", store_id="s2", price="100", stock=1),
        ],
        offers=[offer("flat20", OfferType.FIXED_AMOUNT_OFF, amount="20", code="FLAT20")],
        rules=[rule("r1", condition("50")), rule("r2", condition("30"), store_id="s2")],
        assignments={"p1": "r1", "p2": "r2"},
    )


@pytest.fixture
async def client(session_factory, gateway, clock, catalog_rows):
    app = create_app(session_factory, gateway, clock=clock)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://bazaar.test") as client:
        yield client


def checkout_body(*groups, customer_id="c1"):
    return {
        "customer_id": customer_id,
        "groups": list(groups),
        "address": ADDRESS,
        "recipient": RECIPIENT,
    }


def group(store_id, *items, **extra):
    return {
        "store_id": store_id,
        "items": [{"product_id": pid, "quantity": qty} for pid, qty in items],
        **extra,
    }


# ─────────────────────────────────────────────────────────────────────────────
# Checkout
# ─────────────────────────────────────────────────────────────────────────────


async def test_checkout_returns_receipt_with_money_as_strings(client):
    response = await client.post("/checkout", json=checkout_body(group("s1", ("p1", 2))))

    assert response.status_code == 200
    (placed,) = response.json()["groups"]
    assert placed["ok"] is True
    assert placed["amount"] == 52200
    assert placed["currency"] == "INR"
    assert placed["payment_intent_id"] == "pi_1"
    assert placed["billing"]["total"] == "522.00"
    assert placed["billing"]["gst"] == "72.00"
    assert placed["error"] is None


async def test_duplicate_checkout_is_a_conflict(client):
    body = checkout_body(group("s1", ("p1", 1)))
    first = (await client.post("/checkout", json=body)).json()["groups"][0]

    response = await client.post("/checkout", json=body)

    assert response.status_code == 409
    error = response.json()["groups"][0]["error"]
    assert error["code"] == "duplicate_checkout"
    assert error["details"]["prior_order_id"] == first["order_id"]


async def test_partial_checkout_reports_each_store(client):
    response = await client.post(
        "/checkout",
        json=checkout_body(group("s1", ("p1", 1)), group("s2", ("p2", 3))),
    )

    assert response.status_code == 200
    placed, failed = response.json()["groups"]
    assert placed["ok"] and not failed["ok"]
    assert failed["error"] == {
        "code": "insufficient_stock",
        "message": "Only 1 unit(s) of product p2 available",
        "details": {"product_id": "p2", "requested": 3, "available": 1},
    }


async def test_empty_checkout_is_rejected(client):
    response = await client.post("/checkout", json=checkout_body())

    assert response.status_code == 422
    assert response.json()["code"] == "empty_cart"


async def test_malformed_body_uses_the_error_shape(client):
    body = checkout_body(group("s1", ("p1", "lots")))

    response = await client.post("/checkout", json=body)

    assert response.status_code == 422
    payload = response.json()
    assert payload["code"] == "validation_error"
    assert payload["details"]["errors"]


# ─────────────────────────────────────────────────────────────────────────────
# Billing & cart
# ─────────────────────────────────────────────────────────────────────────────


async def test_billing_preview(client):
    response = await client.post(
        "/billing/preview",
        json={
            "store_id": "s1",
            "items": [{"product_id": "p1", "quantity": 2}],
            "address": ADDRESS,
            "offer_codes": ["flat20"],
        },
    )

    assert response.status_code == 200
    billing = response.json()
    # twenty off each unit
    assert billing["discount"] == "40.00"
    assert billing["applied_offers"][0]["offer_id"] == "flat20"
    assert Decimal(billing["total"]) == Decimal("400") + Decimal("50") + Decimal("64.80") - Decimal("40")


async def test_billing_preview_undeliverable(client):
    response = await client.post(
        "/billing/preview",
        json={"store_id": "s1", "items": [{"product_id": "p1", "quantity": 1}], "address": ABROAD},
    )

    assert response.status_code == 422
    assert response.json()["code"] == "undeliverable_address"


async def test_validate_item(client):
    ok = await client.post("/cart/validate-item", json={"product_id": "p2", "quantity": 1})
    short = await client.post("/cart/validate-item", json={"product_id": "p2", "quantity": 2})
    missing = await client.post("/cart/validate-item", json={"product_id": "nope", "quantity": 1})

    assert ok.status_code == 200
    assert ok.json()["store_id"] == "s2"
    assert Decimal(ok.json()["unit_price"]) == Decimal("100")
    assert short.status_code == 409
    assert short.json()["code"] == "insufficient_stock"
    assert missing.status_code == 422
    assert missing.json()["code"] == "product_not_found"


async def test_cart_summary(client):
    response = await client.post(
        "/cart/summary",
        json={
            "items": [{"product_id": "p1", "quantity": 1}, {"product_id": "p2", "quantity": 1}],
            "address": ADDRESS,
        },
    )

    assert response.status_code == 200
    summary = response.json()
    assert [s["store_name"] for s in summary["stores"]] == ["Tea House", "Store s2"]
    assert summary["grand_total"] == "416.00"


# ─────────────────────────────────────────────────────────────────────────────
# Offers
# ─────────────────────────────────────────────────────────────────────────────


async def test_validate_offer_code(client):
    ok = await client.post("/offers/validate-code", json={"store_id": "s1", "code": "flat20"})
    bad = await client.post("/offers/validate-code", json={"store_id": "s1", "code": "nope"})

    assert ok.status_code == 200
    assert ok.json()["offer_id"] == "flat20"
    assert ok.json()["requires_code"] is True
    assert bad.status_code == 422
    assert bad.json()["code"] == "invalid_offer_code"


async def test_product_offers(client):
    response = await client.get("/products/p1/offers")

    assert response.status_code == 200
    assert [o["offer_id"] for o in response.json()] == ["flat20"]
    assert (await client.get("/products/p2/offers")).json() == []


# ─────────────────────────────────────────────────────────────────────────────
# Lifespan
# ─────────────────────────────────────────────────────────────────────────────


async def test_resources_outlive_pending_notifications(session_factory, gateway, clock, catalog_rows):
    events = []

    class SlowNotifier:
        async def order_created(self, receipt):
            await asyncio.sleep(0.01)
            events.append("notified")

    @asynccontextmanager
    async def resources(app):
        events.append("opened")
        yield
        events.append("closed")

    app = create_app(session_factory, gateway, notifier=SlowNotifier(), clock=clock, resources=resources)
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://bazaar.test") as client:
            response = await client.post("/checkout", json=checkout_body(group("s1", ("p1", 1))))
        assert response.status_code == 200

    assert events == ["opened", "notified", "closed"]
