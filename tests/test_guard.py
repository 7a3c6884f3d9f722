import asyncio
from datetime import timedelta
from decimal import Decimal

from kungfu import Error, Ok

from bazaar.checkout import GuardSpec, guard
from bazaar.domain import BillingResult, NewOrder, OrderStatus
from bazaar.errors import ConflictError, PersistenceError
from bazaar.store import AttemptClaim, AttemptStore, Orders, StoreError

from tests.factories import HOME, NOW, RECIPIENT, product, store

KEY = "checkout:c1:fp"


def spec(attempts, now=NOW):
    claim = AttemptClaim(KEY, "c1", "s1", "fp", now + timedelta(minutes=10))
    return GuardSpec(claim, attempts, now)


async def place_order(session_factory, attempts, status=OrderStatus.ORDER_CREATED):
    async with session_factory() as session, session.begin():
        orders = Orders(session)
        await orders.insert(
            NewOrder(
                order_id="order_1",
                customer_id="c1",
                store_id="s1",
                billing=BillingResult(*(Decimal("1.00"),) * 5),
                lines=(),
                address=HOME,
                recipient=RECIPIENT,
                fingerprint="fp",
            ),
            now=NOW,
        )
        if status is not OrderStatus.ORDER_CREATED:
            await orders.append_status("order_1", status, now=NOW)
        await attempts.complete(session, KEY, "order_1")


async def test_vacant_key_is_claimed(session_factory):
    attempts = AttemptStore(session_factory)

    assert await guard(spec(attempts)) == Ok(KEY)
    assert (await attempts.get(KEY)).unwrap() is not None


async def test_pending_duplicate_is_denied_without_order(session_factory):
    attempts = AttemptStore(session_factory)
    await guard(spec(attempts))

    match await guard(spec(attempts)):
        case Error(ConflictError() as err):
            assert err.code == "duplicate_checkout"
            assert err.prior_order_id is None
        case other:
            raise AssertionError(other)


async def test_completed_duplicate_names_prior_order(session_factory, seeded):
    await seeded(stores=[store()], products=[product("p1")])
    attempts = AttemptStore(session_factory)
    await guard(spec(attempts))
    await place_order(session_factory, attempts)

    result = await guard(spec(attempts, now=NOW + timedelta(minutes=9)))

    assert isinstance(result, Error)
    assert result.error.prior_order_id == "order_1"
    assert result.error.details["fingerprint"] == "fp"


async def test_canceled_order_frees_the_fingerprint(session_factory, seeded):
    await seeded(stores=[store()], products=[product("p1")])
    attempts = AttemptStore(session_factory)
    await guard(spec(attempts))
    await place_order(session_factory, attempts, OrderStatus.CANCELED)

    assert await guard(spec(attempts)) == Ok(KEY)
    fresh = (await attempts.get(KEY)).unwrap()
    assert fresh.order_id is None


async def test_failed_attempt_may_be_reclaimed(session_factory):
    attempts = AttemptStore(session_factory)
    await guard(spec(attempts))
    await attempts.release(KEY, "payment_gateway_error")

    assert await guard(spec(attempts)) == Ok(KEY)


class LockstepAttempts(AttemptStore):
    """Holds each read until two callers have seen the same row."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.reads = 0
        self.both_read = asyncio.Event()

    async def get(self, key):
        result = await super().get(key)
        self.reads += 1
        if self.reads >= 2:
            self.both_read.set()
        await self.both_read.wait()
        return result


async def test_concurrent_retries_of_a_failed_attempt(session_factory):
    await guard(spec(AttemptStore(session_factory)))
    await AttemptStore(session_factory).release(KEY, "payment_gateway_error")
    attempts = LockstepAttempts(session_factory)

    results = await asyncio.gather(guard(spec(attempts)), guard(spec(attempts)))

    assert sum(r == Ok(KEY) for r in results) == 1
    (denied,) = [r for r in results if isinstance(r, Error)]
    assert denied.error.code == "duplicate_checkout"


async def test_concurrent_retries_of_an_expired_attempt(session_factory):
    await guard(spec(AttemptStore(session_factory)))
    attempts = LockstepAttempts(session_factory)
    later = NOW + timedelta(minutes=10)

    results = await asyncio.gather(guard(spec(attempts, now=later)), guard(spec(attempts, now=later)))

    assert sum(r == Ok(KEY) for r in results) == 1


async def test_expired_attempt_is_replaced(session_factory):
    attempts = AttemptStore(session_factory)
    await guard(spec(attempts))

    assert await guard(spec(attempts, now=NOW + timedelta(minutes=10))) == Ok(KEY)


class BrokenAttempts:
    async def get(self, key):
        return Error(StoreError("database is locked"))


async def test_store_failure_is_a_persistence_error():
    result = await guard(spec(BrokenAttempts()))

    assert isinstance(result, Error)
    assert isinstance(result.error, PersistenceError)
