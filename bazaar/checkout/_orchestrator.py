"""
Checkout orchestrator — fan store groups out, one transaction each.

    checkout = Checkout(session_factory, gateway, policy=CheckoutPolicy())

    match await checkout.run(request):
        case Ok(outcome):
            for group in outcome.groups:
                ...
        case Error(err):
            ...  # the request itself was malformed

Per store group:
    validate → fingerprint → guard claim → [bill → reserve → persist →
    payment intent] → commit → notify

Everything in brackets runs in one database transaction; any failure
rolls it back and releases the claim so the shopper can retry.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable

from combinators import batch_all
from combinators import lift as L
from kungfu import Error, LazyCoroResult, Ok, Result
from sqlalchemy.exc import SQLAlchemyError

from bazaar.checkout._fingerprint import attempt_key, fingerprint
from bazaar.checkout._guard import GuardSpec, guard
from bazaar.checkout._notify import Dispatcher, Notifier
from bazaar.checkout._transaction import Environment, Placement, place_order
from bazaar.checkout._types import (
    CheckoutOutcome,
    CheckoutReceipt,
    CheckoutRequest,
    CheckoutStage,
    GroupOutcome,
    Progress,
    StoreGroup,
)
from bazaar.clock import Clock, utcnow
from bazaar.config import Atomicity, CheckoutPolicy
from bazaar.domain import OrderStatus
from bazaar.errors import (
    CheckoutError,
    ConflictError,
    InternalConsistencyError,
    PersistenceError,
    ValidationError,
)
from bazaar.gateway import Gateway
from bazaar.log import Logger, get_logger
from bazaar.pricing import merge_items
from bazaar.store import AttemptClaim, AttemptStore, Orders, SessionFactory, SqlCatalog


logger = get_logger(__name__)

type IdFactory = Callable[[], str]


def new_order_id() -> str:
    return f"order_{uuid.uuid4().hex}"


# ═══════════════════════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════════════════════


def validate_request(request: CheckoutRequest) -> None:
    """Request-wide checks; a failure here rejects every store group."""
    if not request.customer_id.strip():
        raise ValidationError("Customer id is required", code="missing_customer")
    if not request.groups:
        raise ValidationError("Cart is empty", code="empty_cart")

    address = request.address
    missing = [
        name
        for name in ("street1", "city", "postal_code")
        if not getattr(address, name).strip()
    ]
    if missing:
        raise ValidationError(
            "Delivery address is incomplete",
            code="invalid_address",
            details={"missing": missing},
        )
    if not request.recipient.name.strip() or not request.recipient.phone.strip():
        raise ValidationError("Recipient name and phone are required", code="invalid_recipient")

    store_ids = [g.store_id for g in request.groups]
    if len(set(store_ids)) != len(store_ids):
        raise ValidationError("Each store may appear only once", code="duplicate_store_group")


def validate_group(group: StoreGroup) -> None:
    if not group.store_id.strip():
        raise ValidationError("Store id is required", code="missing_store")
    if not group.items:
        raise ValidationError(
            f"No items for store {group.store_id}",
            code="empty_cart",
            details={"store_id": group.store_id},
        )
    for item in group.items:
        quantity = item.quantity
        if not item.product_id.strip():
            raise ValidationError("Product id is required", details={"store_id": group.store_id})
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(
                f"Quantity for product {item.product_id} must be a positive integer",
                details={"product_id": item.product_id, "quantity": quantity},
            )


def as_checkout_error(exc: Exception) -> CheckoutError:
    match exc:
        case CheckoutError():
            return exc
        case SQLAlchemyError():
            return PersistenceError("Storage failure during checkout")
        case _:
            return InternalConsistencyError(
                "Unexpected checkout failure",
                details={"error": repr(exc)},
            )


# ═══════════════════════════════════════════════════════════════════════════════
# Orchestrator
# ═══════════════════════════════════════════════════════════════════════════════


class Checkout:
    def __init__(
        self,
        session_factory: SessionFactory,
        gateway: Gateway,
        *,
        policy: CheckoutPolicy | None = None,
        attempts: AttemptStore | None = None,
        notifier: Notifier | None = None,
        clock: Clock = utcnow,
        new_id: IdFactory = new_order_id,
    ) -> None:
        self.session_factory = session_factory
        self.gateway = gateway
        self.policy = policy or CheckoutPolicy()
        self.attempts = attempts or AttemptStore(session_factory)
        self.dispatcher = Dispatcher(notifier)
        self.clock = clock
        self.new_id = new_id

    async def run(self, request: CheckoutRequest) -> Result[CheckoutOutcome, CheckoutError]:
        """
        Check out every store group concurrently.

        Error only when the request as a whole is invalid; per-store
        failures are reported inside the outcome.
        """
        try:
            validate_request(request)
        except ValidationError as e:
            logger.info("checkout_rejected", customer_id=request.customer_id, code=e.code)
            return Error(e)

        groups = list(request.groups)
        batch = await batch_all(
            groups,
            lambda group: self.place(request, group),
            concurrency=self.policy.concurrency,
        )
        outcomes = [
            GroupOutcome(group.store_id, result)
            for group, result in zip(groups, batch.unwrap(), strict=True)
        ]

        if self.policy.atomicity is Atomicity.ALL_OR_NOTHING:
            outcomes = await self._compensate(outcomes)

        for outcome in outcomes:
            if isinstance(outcome.result, Ok):
                self.dispatcher.order_created(outcome.result.value)

        return Ok(CheckoutOutcome(tuple(outcomes)))

    def place(
        self,
        request: CheckoutRequest,
        group: StoreGroup,
    ) -> LazyCoroResult[CheckoutReceipt, CheckoutError]:
        """One store group as a lazy Result."""
        return L.catching_async(
            lambda: self._place(request, group),
            on_error=as_checkout_error,
        )

    async def drain(self) -> None:
        """Wait for pending notifications."""
        await self.dispatcher.drain()

    # ─────────────────────────────────────────────────────────────────────────
    # One store group
    # ─────────────────────────────────────────────────────────────────────────

    async def _place(self, request: CheckoutRequest, group: StoreGroup) -> CheckoutReceipt:
        progress = Progress()
        log = logger.bind(customer_id=request.customer_id, store_id=group.store_id)

        validate_group(group)
        items = merge_items(group.items)
        fp = fingerprint(request.customer_id, group.store_id, items, request.address, group.offer_codes)
        key = attempt_key(request.customer_id, fp)
        now = self.clock()

        claim = AttemptClaim(
            key=key,
            customer_id=request.customer_id,
            store_id=group.store_id,
            fingerprint=fp,
            expires_at=now + self.policy.duplicate_window,
        )
        match await guard(GuardSpec(claim, self.attempts, now)):
            case Error(err):
                log.info("checkout_duplicate_blocked", fingerprint=fp, code=err.code)
                raise err
            case Ok(_):
                progress.advance(CheckoutStage.FINGERPRINT_CHECKED)

        placement = Placement(
            order_id=self.new_id(),
            customer_id=request.customer_id,
            store_id=group.store_id,
            items=items,
            address=request.address,
            recipient=request.recipient,
            offer_codes=group.offer_codes,
            fingerprint=fp,
            attempt_key=key,
            client_totals=group.client_totals,
        )
        env = Environment(self.policy, self.gateway, self.attempts, now)

        try:
            async with self.session_factory() as session, session.begin():
                receipt = await place_order(session, placement, env, progress)
        except Exception as e:
            error = as_checkout_error(e)
            await self._release(key, error, log)
            self._log_failure(log, progress, placement.order_id, error)
            if error is e:
                raise
            raise error from e

        progress.advance(CheckoutStage.COMMITTED)
        log.info(
            "order_committed",
            order_id=receipt.order_id,
            total=str(receipt.billing.total),
            payment_intent_id=receipt.payment_intent_id,
        )
        return receipt

    async def _release(self, key: str, error: CheckoutError, log: Logger) -> None:
        match await self.attempts.release(key, error.code):
            case Error(err):
                log.warning("attempt_release_failed", key=key, error=err.message)
            case Ok(_):
                pass

    @staticmethod
    def _log_failure(log: Logger, progress: Progress, order_id: str, error: CheckoutError) -> None:
        failed_at = progress.stage.value
        progress.advance(CheckoutStage.FAILED)
        if isinstance(error, InternalConsistencyError):
            log.error(
                "checkout_failed",
                order_id=order_id,
                stage=failed_at,
                code=error.code,
                message=error.message,
                details=error.details,
            )
        else:
            log.info("checkout_failed", order_id=order_id, stage=failed_at, code=error.code)

    # ─────────────────────────────────────────────────────────────────────────
    # All-or-nothing compensation
    # ─────────────────────────────────────────────────────────────────────────

    async def _compensate(self, outcomes: list[GroupOutcome]) -> list[GroupOutcome]:
        """Cancel committed groups in reverse order when any group failed."""
        failed = [o.store_id for o in outcomes if not o.ok]
        if not failed or len(failed) == len(outcomes):
            return outcomes

        compensated = list(outcomes)
        comp_run = 0
        comp_failed = 0
        for index in reversed(range(len(outcomes))):
            result = outcomes[index].result
            if not isinstance(result, Ok):
                continue
            receipt = result.value
            error: CheckoutError
            try:
                await self._cancel(receipt)
                comp_run += 1
                error = ConflictError.aborted(receipt.store_id, failed)
            except Exception as e:
                comp_failed += 1
                logger.error(
                    "compensation_failed",
                    order_id=receipt.order_id,
                    store_id=receipt.store_id,
                    error=repr(e),
                )
                error = InternalConsistencyError(
                    "Order could not be rolled back",
                    details={"order_id": receipt.order_id},
                )
            compensated[index] = GroupOutcome(receipt.store_id, Error(error))

        logger.warning(
            "checkout_compensated",
            failed_store_ids=failed,
            compensators_run=comp_run,
            compensators_failed=comp_failed,
        )
        return compensated

    async def _cancel(self, receipt: CheckoutReceipt) -> None:
        """Order → CANCELED and its reserved stock back on the shelf."""
        async with self.session_factory() as session, session.begin():
            orders = Orders(session, currency=self.policy.currency)
            catalog = SqlCatalog(session)
            await orders.append_status(receipt.order_id, OrderStatus.CANCELED, now=self.clock())
            for product_id, quantity in await orders.lines(receipt.order_id):
                await catalog.release(product_id, quantity)


__all__ = (
    "Checkout",
    "new_order_id",
    "validate_request",
    "validate_group",
    "as_checkout_error",
)
