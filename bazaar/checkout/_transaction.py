"""
Store transaction — everything one store group does inside one database
transaction: bill, reserve, persist, create the payment intent.

The caller opens the transaction; any exception raised here rolls it back.

    async with session_factory() as session, session.begin():
        receipt = await place_order(session, placement, env, progress)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from kungfu import Error
from sqlalchemy.ext.asyncio import AsyncSession

from bazaar.checkout._types import CheckoutReceipt, CheckoutStage, ClientTotals, Progress
from bazaar.config import CheckoutPolicy
from bazaar.domain import (
    Address,
    BillingResult,
    CartItem,
    NewOrder,
    OrderLine,
    Recipient,
    StoreAccount,
)
from bazaar.errors import (
    ConfigurationError,
    ConflictError,
    InternalConsistencyError,
    PersistenceError,
    ValidationError,
)
from bazaar.gateway import Gateway, PaymentIntentRequest, Transfer
from bazaar.log import get_logger
from bazaar.money import ZERO, quantize, to_minor_units, within_tolerance
from bazaar.pricing import BillingRequest, compute_billing
from bazaar.store import AttemptStore, Orders, SqlCatalog


logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Placement:
    """One store group, validated and claimed."""

    order_id: str
    customer_id: str
    store_id: str
    items: tuple[CartItem, ...]
    address: Address
    recipient: Recipient
    offer_codes: tuple[str, ...]
    fingerprint: str
    attempt_key: str
    client_totals: ClientTotals | None = None


@dataclass(frozen=True, slots=True)
class Environment:
    policy: CheckoutPolicy
    gateway: Gateway
    attempts: AttemptStore
    now: datetime


# ═══════════════════════════════════════════════════════════════════════════════
# Checks
# ═══════════════════════════════════════════════════════════════════════════════


def check_client_totals(client: ClientTotals, server: BillingResult) -> None:
    """Raises ConflictError(billing_mismatch) on the first field off by > 0.01."""
    for field in ("subtotal", "shipping", "discount", "gst", "total"):
        theirs, ours = getattr(client, field), getattr(server, field)
        if not within_tolerance(theirs, ours):
            raise ConflictError.billing_mismatch(field, str(theirs), str(ours))


def settlement_transfers(
    account: StoreAccount,
    billing: BillingResult,
    currency: str,
) -> tuple[Transfer, ...]:
    """
    Platform-owned stores settle directly; third-party stores get their
    share transferred to the linked account.

    The share is summed from the billing parts (goods net of discount,
    plus shipping and tax), independently of the charged total.
    """
    if account.platform_owned:
        return ()
    if not account.settlement_account:
        raise ConfigurationError(
            f"Store {account.store_id} has no linked settlement account",
            details={"store_id": account.store_id},
        )
    share = (
        to_minor_units(billing.subtotal)
        - to_minor_units(billing.discount)
        + to_minor_units(billing.shipping)
        + to_minor_units(billing.gst)
    )
    return (Transfer(account.settlement_account, share, currency),)


# ═══════════════════════════════════════════════════════════════════════════════
# Transaction body
# ═══════════════════════════════════════════════════════════════════════════════


async def place_order(
    session: AsyncSession,
    placement: Placement,
    env: Environment,
    progress: Progress,
) -> CheckoutReceipt:
    catalog = SqlCatalog(session)
    orders = Orders(session, currency=env.policy.currency)
    store_id = placement.store_id

    billing = await compute_billing(
        catalog,
        BillingRequest(store_id, placement.items, placement.address, placement.offer_codes),
        policy=env.policy,
        now=env.now,
    )
    if env.policy.billing_check and placement.client_totals is not None:
        check_client_totals(placement.client_totals, billing)
    if billing.total <= ZERO:
        raise ValidationError(
            "Order total must be positive",
            code="non_positive_total",
            details={"store_id": store_id, "total": str(billing.total)},
        )

    account = await catalog.store_account(store_id)
    if account is None:
        raise ConfigurationError(f"Store {store_id} is not registered", details={"store_id": store_id})
    amount = to_minor_units(billing.total)
    transfers = settlement_transfers(account, billing, env.policy.currency)

    # Stock
    quantities = {item.product_id: item.quantity for item in placement.items}
    locked = await catalog.lock_products(list(quantities))
    if missing := sorted(set(quantities) - set(locked)):
        raise ValidationError(
            f"Product {missing[0]} was removed during checkout",
            details={"product_id": missing[0]},
        )
    for product_id in sorted(quantities):
        await catalog.reserve(product_id, quantities[product_id])

    lines = tuple(
        OrderLine(pid, qty, locked[pid].price) for pid, qty in quantities.items()
    )
    locked_subtotal = quantize(sum((line.price * line.quantity for line in lines), ZERO))
    if locked_subtotal != billing.subtotal:
        raise ConflictError.billing_mismatch("subtotal", str(billing.subtotal), str(locked_subtotal))
    progress.advance(CheckoutStage.STOCK_RESERVED)

    # Order
    await orders.insert(
        NewOrder(
            order_id=placement.order_id,
            customer_id=placement.customer_id,
            store_id=store_id,
            billing=billing,
            lines=lines,
            address=placement.address,
            recipient=placement.recipient,
            fingerprint=placement.fingerprint,
        ),
        now=env.now,
    )
    completed = await env.attempts.complete(session, placement.attempt_key, placement.order_id)
    if isinstance(completed, Error):
        raise PersistenceError(completed.error.message)
    progress.advance(CheckoutStage.ORDER_PERSISTED)

    # Payment intent
    request = PaymentIntentRequest(
        amount=amount,
        currency=env.policy.currency,
        receipt=placement.order_id,
        transfers=transfers,
        notes={
            "customer_id": placement.customer_id,
            "store_id": store_id,
            "fingerprint": placement.fingerprint,
        },
    )
    if transfers and request.transferred != amount:
        logger.error(
            "transfer_sum_mismatch",
            order_id=placement.order_id,
            amount=amount,
            transferred=request.transferred,
        )
        raise InternalConsistencyError(
            "Transfers do not add up to the payment amount",
            details={"amount": amount, "transferred": request.transferred},
        )

    intent = await env.gateway.create_payment_intent(request)
    await orders.set_payment_intent(placement.order_id, intent.intent_id)
    progress.advance(CheckoutStage.PAYMENT_INTENT_CREATED)

    return CheckoutReceipt(
        order_id=placement.order_id,
        store_id=store_id,
        billing=billing,
        payment_intent_id=intent.intent_id,
        fingerprint=placement.fingerprint,
        amount=amount,
        currency=env.policy.currency,
    )


__all__ = (
    "Placement",
    "Environment",
    "check_client_totals",
    "settlement_transfers",
    "place_order",
)
