"""
Checkout types — requests, receipts and per-store outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from kungfu import Ok, Result

from bazaar.domain import Address, BillingResult, CartItem, Recipient
from bazaar.errors import CheckoutError
from bazaar.money import Money


class CheckoutStage(Enum):
    """
    Per-store progress.

        VALIDATING → FINGERPRINT_CHECKED → STOCK_RESERVED →
        ORDER_PERSISTED → PAYMENT_INTENT_CREATED → COMMITTED

    FAILED is reachable from every stage.
    """

    VALIDATING = "validating"
    FINGERPRINT_CHECKED = "fingerprint_checked"
    STOCK_RESERVED = "stock_reserved"
    ORDER_PERSISTED = "order_persisted"
    PAYMENT_INTENT_CREATED = "payment_intent_created"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass
class Progress:
    """Mutable stage marker threaded through one store's transaction."""

    stage: CheckoutStage = CheckoutStage.VALIDATING

    def advance(self, stage: CheckoutStage) -> None:
        self.stage = stage


# ═══════════════════════════════════════════════════════════════════════════════
# Request
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ClientTotals:
    """Totals the client displayed; compared only when the policy asks."""

    subtotal: Money
    shipping: Money
    discount: Money
    gst: Money
    total: Money


@dataclass(frozen=True, slots=True)
class StoreGroup:
    store_id: str
    items: tuple[CartItem, ...]
    offer_codes: tuple[str, ...] = ()
    client_totals: ClientTotals | None = None


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    customer_id: str
    groups: tuple[StoreGroup, ...]
    address: Address
    recipient: Recipient


# ═══════════════════════════════════════════════════════════════════════════════
# Results
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CheckoutReceipt:
    order_id: str
    store_id: str
    billing: BillingResult
    payment_intent_id: str
    fingerprint: str
    amount: int
    currency: str


@dataclass(frozen=True, slots=True)
class GroupOutcome:
    store_id: str
    result: Result[CheckoutReceipt, CheckoutError]

    @property
    def ok(self) -> bool:
        return isinstance(self.result, Ok)


@dataclass(frozen=True, slots=True)
class CheckoutOutcome:
    """One entry per store group, in request order."""

    groups: tuple[GroupOutcome, ...]

    @property
    def receipts(self) -> list[CheckoutReceipt]:
        return [g.result.value for g in self.groups if isinstance(g.result, Ok)]

    @property
    def failures(self) -> dict[str, CheckoutError]:
        failed: dict[str, CheckoutError] = {}
        for group in self.groups:
            if not isinstance(group.result, Ok):
                failed[group.store_id] = group.result.error
        return failed

    @property
    def succeeded(self) -> bool:
        return all(g.ok for g in self.groups)


__all__ = (
    "CheckoutStage",
    "Progress",
    "ClientTotals",
    "StoreGroup",
    "CheckoutRequest",
    "CheckoutReceipt",
    "GroupOutcome",
    "CheckoutOutcome",
)
