from decimal import Decimal

import pytest

from bazaar.cart import summarize_cart, validate_cart_item
from bazaar.domain import CartItem, OfferType, Scope
from bazaar.errors import StockError, UndeliverableError, ValidationError
from bazaar.pricing import applicable_offers, validate_offer_code
from bazaar.store import MemoryCatalog

from tests.factories import ABROAD, HOME, NOW, condition, offer, product, rule, store


@pytest.fixture
def catalog():
    return (
        MemoryCatalog()
        .add_stores(store("s1", name="Tea House"), store("s2", name="Pots", account="acc_s2"))
        .add_products(
            product("p1", price="200", tax="18", stock=5, reserved=2, tags=("tea",)),
            product("p2", price="80"),
            product("gone", active=False),
            product("pot", store_id="s2", price="300"),
        )
        .add_offers(
            offer("tea10", OfferType.PERCENT_OFF, percentage="10", scope=Scope(tags=frozenset({"tea"}))),
            offer("flat20", OfferType.FIXED_AMOUNT_OFF, amount="20", code="FLAT20"),
            offer("pots5", OfferType.PERCENT_OFF, percentage="5", store_id="s2", code="POTS"),
        )
        .assign(["p1", "p2"], rule("r1", condition("50"), grouping=True))
        .assign("pot", rule("r2", condition("40"), store_id="s2", international=False))
    )


def items(*pairs):
    return [CartItem(pid, qty) for pid, qty in pairs]


# ─────────────────────────────────────────────────────────────────────────────
# Item checks
# ─────────────────────────────────────────────────────────────────────────────


async def test_item_within_available_stock(catalog):
    availability = await validate_cart_item(catalog, "p1", 3)

    assert availability.store_id == "s1"
    assert availability.available == 3
    assert availability.unit_price == Decimal("200")


async def test_item_beyond_available_stock(catalog):
    with pytest.raises(StockError) as exc:
        await validate_cart_item(catalog, "p1", 4)
    assert exc.value.details == {"product_id": "p1", "requested": 4, "available": 3}


@pytest.mark.parametrize("product_id", ["ghost", "gone"])
async def test_unknown_or_inactive_item(catalog, product_id):
    with pytest.raises(ValidationError) as exc:
        await validate_cart_item(catalog, product_id, 1)
    assert exc.value.code == "product_not_found"


@pytest.mark.parametrize("quantity", [0, -2, False])
async def test_item_quantity_must_be_positive(catalog, quantity):
    with pytest.raises(ValidationError):
        await validate_cart_item(catalog, "p1", quantity)


# ─────────────────────────────────────────────────────────────────────────────
# Summaries
# ─────────────────────────────────────────────────────────────────────────────


async def test_summary_bills_each_store(catalog):
    summary = await summarize_cart(catalog, items(("p1", 1), ("pot", 1), ("p2", 1)), HOME, now=NOW)

    s1, s2 = summary.stores
    assert (s1.store_id, s1.store_name) == ("s1", "Tea House")
    assert s1.items == (CartItem("p1", 1), CartItem("p2", 1))
    # tea10 takes 20 off p1; 18% of 180
    assert s1.billing.total == Decimal("280.00") + Decimal("50.00") + Decimal("32.40") - Decimal("20.00")
    assert s2.billing.total == Decimal("340.00")
    assert summary.grand_total == s1.billing.total + s2.billing.total
    assert summary.billable


async def test_summary_applies_codes_per_store(catalog):
    summary = await summarize_cart(
        catalog,
        items(("p2", 1), ("pot", 1)),
        HOME,
        offer_codes={"s2": ["pots"]},
        now=NOW,
    )

    s1, s2 = summary.stores
    assert s1.billing.discount == Decimal("0.00")
    assert s2.billing.discount == Decimal("15.00")


async def test_unbillable_store_keeps_its_error(catalog):
    catalog.assign("p2", rule("world", condition("900"), international=True))

    summary = await summarize_cart(catalog, items(("p2", 1), ("pot", 1)), ABROAD, now=NOW)

    s1, s2 = summary.stores
    assert s1.billing is not None
    assert s2.billing is None
    assert isinstance(s2.error, UndeliverableError)
    assert summary.grand_total == s1.billing.total
    assert not summary.billable


async def test_summary_rejects_unknown_products(catalog):
    with pytest.raises(ValidationError) as exc:
        await summarize_cart(catalog, items(("p1", 1), ("ghost", 1)), HOME, now=NOW)
    assert exc.value.details == {"product_ids": ["ghost"]}


async def test_summary_rejects_empty_cart(catalog):
    with pytest.raises(ValidationError):
        await summarize_cart(catalog, [], HOME, now=NOW)


# ─────────────────────────────────────────────────────────────────────────────
# Offers
# ─────────────────────────────────────────────────────────────────────────────


async def test_applicable_offers_follow_scope(catalog):
    tea = await applicable_offers(catalog, "p1", NOW)
    other = await applicable_offers(catalog, "p2", NOW)

    assert [o.offer_id for o in tea] == ["tea10", "flat20"]
    assert [o.offer_id for o in other] == ["flat20"]


async def test_applicable_offers_for_unknown_product(catalog):
    with pytest.raises(ValidationError):
        await applicable_offers(catalog, "ghost", NOW)


async def test_offer_code_lookup(catalog):
    found = await validate_offer_code(catalog, "s1", " flat20", NOW)
    assert found.offer_id == "flat20"


@pytest.mark.parametrize(
    ("store_id", "code"),
    [("s1", "NOPE"), ("s1", "  "), ("s1", "POTS"), ("s2", "FLAT20")],
)
async def test_invalid_offer_codes(catalog, store_id, code):
    with pytest.raises(ValidationError) as exc:
        await validate_offer_code(catalog, store_id, code, NOW)
    assert exc.value.code == "invalid_offer_code"
