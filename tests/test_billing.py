from decimal import Decimal

import pytest
from kungfu import Error, Ok

from bazaar.config import CheckoutPolicy
from bazaar.domain import CartItem, OfferType
from bazaar.errors import StockError, UndeliverableError, ValidationError
from bazaar.pricing import BillingContext, BillingNode, BillingRequest, compute_billing
from bazaar.store import MemoryCatalog

from tests.factories import ABROAD, HOME, NOW, condition, offer, product, rule, store


def catalog(*products, offers=(), shipping=None):
    cat = MemoryCatalog().add_stores(store()).add_products(*products).add_offers(*offers)
    flat = shipping or rule("r1", condition("50"))
    return cat.assign([p.product_id for p in products], flat)


async def bill(cat, *items, address=HOME, codes=(), policy=None):
    request = BillingRequest("s1", tuple(CartItem(pid, qty) for pid, qty in items), address, codes)
    return await compute_billing(cat, request, policy=policy, now=NOW)


async def test_reference_scenario():
    cat = catalog(product("p1", price="200", tax="18"))

    result = await bill(cat, ("p1", 2))

    assert (result.subtotal, result.shipping, result.discount, result.gst, result.total) == (
        Decimal("400.00"),
        Decimal("50.00"),
        Decimal("0.00"),
        Decimal("72.00"),
        Decimal("522.00"),
    )


async def test_tax_on_exclusive_line_before_and_after_discount():
    cat = catalog(product("p1", price="1000", tax="18"))
    assert (await bill(cat, ("p1", 1))).gst == Decimal("180.00")

    discounted = catalog(
        product("p1", price="1000", tax="18"),
        offers=[offer("pct", OfferType.PERCENT_OFF, percentage="10")],
    )
    result = await bill(discounted, ("p1", 1))
    assert result.gst == Decimal("162.00")
    assert result.discount == Decimal("100.00")
    assert result.total == Decimal("1000.00") + Decimal("50.00") + Decimal("162.00") - Decimal("100.00")


async def test_inclusive_tax_is_never_added_again():
    cat = catalog(product("p1", price="118", tax="18", inclusive=True))
    result = await bill(cat, ("p1", 3))

    assert result.gst == Decimal("0.00")
    assert result.total == Decimal("354.00") + Decimal("50.00")


async def test_shipping_taxed_at_highest_rate_only_when_enabled():
    cat = catalog(product("p1", price="200", tax="18"), product("p2", price="100", tax="5"))
    default = await bill(cat, ("p1", 1), ("p2", 1))
    taxed = await bill(cat, ("p1", 1), ("p2", 1), policy=CheckoutPolicy().with_shipping_tax())

    # both lines share one ungrouped rule each: shipping is 100
    assert default.shipping == Decimal("100.00")
    assert taxed.gst - default.gst == Decimal("18.00")


async def test_rounding_happens_at_the_boundary():
    cat = catalog(product("p1", price="33.33", tax="18"))
    result = await bill(cat, ("p1", 1))

    assert result.gst == Decimal("6.00")
    assert result.total == result.subtotal + result.shipping + result.gst - result.discount


async def test_rebilling_is_identical():
    cat = catalog(
        product("p1", price="99.99", tax="12"),
        product("p2", price="14.49", tax="18"),
        offers=[
            offer("bogo", OfferType.BUY_N_GET_K_FREE, buy_n=2, get_k=1),
            offer("pct", OfferType.PERCENT_OFF, percentage="7.5"),
        ],
    )
    first = await bill(cat, ("p1", 3), ("p2", 4))
    second = await bill(cat, ("p1", 3), ("p2", 4))

    assert first == second


async def test_offer_code_unlocks_gated_discount():
    cat = catalog(
        product("p1", price="200"),
        offers=[offer("code", OfferType.FIXED_AMOUNT_OFF, amount="20", code="FLAT20")],
    )
    assert (await bill(cat, ("p1", 1))).discount == Decimal("0.00")

    result = await bill(cat, ("p1", 1), codes=("flat20",))
    assert result.discount == Decimal("20.00")
    assert [a.offer_id for a in result.applied_offers] == ["code"]


async def test_undeliverable_fails_the_whole_billing():
    cat = catalog(product("p1"), product("p2"))
    cat.assign("p1", rule("world", condition("500"), international=True))

    with pytest.raises(UndeliverableError) as exc:
        await bill(cat, ("p1", 1), ("p2", 1), address=ABROAD)
    assert exc.value.code == "undeliverable_address"


async def test_product_of_another_store_is_rejected():
    cat = catalog(product("p1"), product("p9", store_id="s2"))

    with pytest.raises(ValidationError):
        await bill(cat, ("p1", 1), ("p9", 1))


async def test_stock_shortfall_is_reported_with_availability():
    cat = catalog(product("p1", stock=5, reserved=3))

    with pytest.raises(StockError) as exc:
        await bill(cat, ("p1", 3))
    assert exc.value.available == 2


async def test_execute_returns_result_instead_of_raising():
    cat = catalog(product("p1", price="200", tax="18"))
    context = BillingContext(
        request=BillingRequest("s1", (CartItem("p1", 2),), HOME),
        catalog=cat,
        policy=CheckoutPolicy(),
        now=NOW,
    )
    match await BillingNode.execute(context):
        case Ok(result):
            assert result.total == Decimal("522.00")
        case Error(err):
            pytest.fail(f"unexpected {err!r}")

    undeliverable = BillingContext(
        request=BillingRequest("s1", (CartItem("p1", 2),), ABROAD),
        catalog=cat,
        policy=CheckoutPolicy(),
        now=NOW,
    )
    result = await BillingNode.execute(undeliverable)
    assert isinstance(result, Error)
    assert isinstance(result.error, UndeliverableError)


async def test_empty_request_is_invalid():
    with pytest.raises(ValidationError):
        await bill(catalog(product("p1")))
