from datetime import timedelta
from decimal import Decimal

import pytest
from kungfu import Ok
from sqlalchemy import select

from bazaar.domain import (
    BillingResult,
    LocationKind,
    LocationPredicate,
    NewOrder,
    OfferType,
    OrderLine,
    OrderStatus,
)
from bazaar.errors import StockError
from bazaar.store import (
    AttemptClaim,
    AttemptState,
    AttemptStore,
    OrderStatusHistoryTable,
    Orders,
    SqlCatalog,
    create_database,
)
from bazaar.store._db import SQLITE_BUSY_TIMEOUT_MS

from tests.factories import HOME, NOW, RECIPIENT, condition, offer, product, rule, store


KARNATAKA = LocationPredicate(LocationKind.STATE, state="Karnataka", country="India")


@pytest.fixture
async def catalog_rows(seeded):
    await seeded(
        stores=[store("s1"), store("s2", platform_owned=True, account=None)],
        products=[
            product("p1", price="199.99", tax="18", tags=("tea",), collections=("c-hot", "c-new")),
            product("p2", stock=1),
            product("p3", store_id="s2"),
        ],
        offers=[
            offer("late", OfferType.PERCENT_OFF, percentage="5", valid_from=NOW - timedelta(hours=1)),
            offer("early", OfferType.PERCENT_OFF, percentage="5", valid_from=NOW - timedelta(days=3)),
            offer("coded", OfferType.FIXED_AMOUNT_OFF, amount="20", code="Flat20"),
            offer("expired", OfferType.PERCENT_OFF, percentage="5", valid_until=NOW - timedelta(minutes=1)),
            offer("other", OfferType.PERCENT_OFF, percentage="5", store_id="s2"),
        ],
        rules=[
            rule("r1", condition("20", KARNATAKA), condition("50"), grouping=True),
            rule("r2", condition("80"), store_id="s2"),
        ],
        assignments={"p1": "r1", "p2": "r1", "p3": "r2"},
    )


def new_order(order_id="order_1", quantity=2):
    return NewOrder(
        order_id=order_id,
        customer_id="c1",
        store_id="s1",
        billing=BillingResult(
            subtotal=Decimal("200.00"),
            shipping=Decimal("50.00"),
            discount=Decimal("0.00"),
            gst=Decimal("0.00"),
            total=Decimal("250.00"),
        ),
        lines=(OrderLine("p2", quantity, Decimal("100")),),
        address=HOME,
        recipient=RECIPIENT,
        fingerprint="fp",
    )


# ─────────────────────────────────────────────────────────────────────────────
# Catalog
# ─────────────────────────────────────────────────────────────────────────────


async def test_products_carry_tags_and_collections(session_factory, catalog_rows):
    async with session_factory() as session:
        products = await SqlCatalog(session).products(["p1", "ghost"])

    assert list(products) == ["p1"]
    p1 = products["p1"]
    assert p1.price == Decimal("199.99")
    assert p1.tax_rate == Decimal("18")
    assert p1.tags == frozenset({"tea"})
    assert p1.collection_ids == frozenset({"c-hot", "c-new"})


async def test_live_offers_are_filtered_and_ordered(session_factory, catalog_rows):
    async with session_factory() as session:
        offers = await SqlCatalog(session).live_offers("s1", NOW)

    assert [o.offer_id for o in offers] == ["early", "coded", "late"]


async def test_offer_by_code_ignores_case_and_spaces(session_factory, catalog_rows):
    async with session_factory() as session:
        catalog = SqlCatalog(session)
        found = await catalog.offer_by_code("s1", " FLAT20 ", NOW)
        missing = await catalog.offer_by_code("s2", "flat20", NOW)

    assert found is not None and found.offer_id == "coded"
    assert missing is None


async def test_shipping_assignments_round_trip_conditions(session_factory, catalog_rows):
    async with session_factory() as session:
        assignments = await SqlCatalog(session).shipping_assignments("s1", ["p1", "p2", "p3"])

    assert set(assignments) == {"p1", "p2"}
    r1 = assignments["p1"]
    assert r1.grouping_enabled
    assert r1.conditions[0].when == (KARNATAKA,)
    assert r1.conditions[0].base_cost == Decimal("20")
    assert r1.conditions[1].is_default


async def test_store_account(session_factory, catalog_rows):
    async with session_factory() as session:
        catalog = SqlCatalog(session)
        seller = await catalog.store_account("s1")
        platform = await catalog.store_account("s2")
        ghost = await catalog.store_account("nope")

    assert seller is not None and seller.settlement_account == "acc_s1"
    assert platform is not None and platform.platform_owned
    assert ghost is None


async def test_reserve_and_release(session_factory, catalog_rows):
    async with session_factory() as session, session.begin():
        catalog = SqlCatalog(session)
        await catalog.lock_products(["p2"])
        await catalog.reserve("p2", 1)

    async with session_factory() as session:
        assert (await SqlCatalog(session).products(["p2"]))["p2"].available == 0

    async with session_factory() as session, session.begin():
        with pytest.raises(StockError) as exc:
            await SqlCatalog(session).reserve("p2", 1)
    assert exc.value.available == 0

    async with session_factory() as session, session.begin():
        await SqlCatalog(session).release("p2", 1)

    async with session_factory() as session:
        assert (await SqlCatalog(session).products(["p2"]))["p2"].available == 1


# ─────────────────────────────────────────────────────────────────────────────
# Orders
# ─────────────────────────────────────────────────────────────────────────────


async def test_order_insert_and_status_history(session_factory, catalog_rows):
    async with session_factory() as session, session.begin():
        orders = Orders(session)
        await orders.insert(new_order(), now=NOW)
        await orders.set_payment_intent("order_1", "pi_1")

    async with session_factory() as session, session.begin():
        orders = Orders(session)
        assert await orders.status("order_1") is OrderStatus.ORDER_CREATED
        assert await orders.lines("order_1") == [("p2", 2)]
        await orders.append_status("order_1", OrderStatus.CANCELED, now=NOW)

    async with session_factory() as session:
        assert await Orders(session).status("order_1") is OrderStatus.CANCELED
        history = await session.scalars(
            select(OrderStatusHistoryTable.status).where(OrderStatusHistoryTable.order_id == "order_1")
        )
        assert sorted(history) == ["Canceled", "Order Created"]
        assert await Orders(session).status("missing") is None


# ─────────────────────────────────────────────────────────────────────────────
# Attempts
# ─────────────────────────────────────────────────────────────────────────────


def claim(key="checkout:c1:fp"):
    return AttemptClaim(key, "c1", "s1", "fp", NOW + timedelta(minutes=10))


async def test_claim_is_insert_if_absent(session_factory):
    attempts = AttemptStore(session_factory)

    assert await attempts.claim(claim()) == Ok(True)
    assert await attempts.claim(claim()) == Ok(False)

    attempt = (await attempts.get(claim().key)).unwrap()
    assert attempt is not None
    assert attempt.state is AttemptState.PENDING
    assert not attempt.is_expired(NOW)
    assert attempt.is_expired(NOW + timedelta(minutes=10))


async def test_complete_links_order_and_its_status(session_factory, catalog_rows):
    attempts = AttemptStore(session_factory)
    await attempts.claim(claim())

    async with session_factory() as session, session.begin():
        await Orders(session).insert(new_order(), now=NOW)
        assert await attempts.complete(session, claim().key, "order_1") == Ok(None)

    attempt = (await attempts.get(claim().key)).unwrap()
    assert attempt.state is AttemptState.COMPLETED
    assert attempt.order_id == "order_1"
    assert attempt.order_status is OrderStatus.ORDER_CREATED
    assert not attempt.released


async def test_complete_unknown_attempt_is_an_error(session_factory):
    async with session_factory() as session, session.begin():
        result = await AttemptStore(session_factory).complete(session, "nope", "order_1")
    assert not isinstance(result, Ok)


async def test_release_then_reclaim(session_factory):
    attempts = AttemptStore(session_factory)
    await attempts.claim(claim())

    assert await attempts.release(claim().key, "insufficient_stock") == Ok(None)
    attempt = (await attempts.get(claim().key)).unwrap()
    assert attempt.released
    assert attempt.error == "insufficient_stock"

    assert await attempts.reclaim(claim(), NOW) == Ok(True)
    assert await attempts.reclaim(claim(), NOW) == Ok(False)
    attempt = (await attempts.get(claim().key)).unwrap()
    assert attempt.state is AttemptState.PENDING
    assert attempt.error is None


async def test_reclaim_leaves_live_attempts_alone(session_factory, catalog_rows):
    attempts = AttemptStore(session_factory)
    await attempts.claim(claim())
    assert await attempts.reclaim(claim(), NOW) == Ok(False)

    async with session_factory() as session, session.begin():
        await Orders(session).insert(new_order(), now=NOW)
        await attempts.complete(session, claim().key, "order_1")
    assert await attempts.reclaim(claim(), NOW) == Ok(False)

    # once the window closes anything may be reclaimed
    assert await attempts.reclaim(claim(), NOW + timedelta(minutes=10)) == Ok(True)
    assert (await attempts.get(claim().key)).unwrap().order_id is None


async def test_reclaim_after_order_canceled(session_factory, catalog_rows):
    attempts = AttemptStore(session_factory)
    await attempts.claim(claim())
    async with session_factory() as session, session.begin():
        orders = Orders(session)
        await orders.insert(new_order(), now=NOW)
        await attempts.complete(session, claim().key, "order_1")
        await orders.append_status("order_1", OrderStatus.CANCELED, now=NOW)

    assert await attempts.reclaim(claim(), NOW) == Ok(True)


async def test_reclaim_unknown_key(session_factory):
    assert await AttemptStore(session_factory).reclaim(claim(), NOW) == Ok(False)


async def test_sqlite_connections_wait_for_the_write_lock(tmp_path):
    _, engine = await create_database(f"sqlite+aiosqlite:///{tmp_path / 'locks.db'}")
    try:
        async with engine.connect() as conn:
            timeout = (await conn.exec_driver_sql("PRAGMA busy_timeout")).scalar()
    finally:
        await engine.dispose()

    assert timeout == SQLITE_BUSY_TIMEOUT_MS
