"""
Wire models — pydantic in/out shapes around the domain.

In-models build domain values with `to_domain()`; out-models are built
from domain values with `from_domain()`. Money travels as decimal strings.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from kungfu import Ok
from pydantic import BaseModel, Field

from bazaar.cart import CartSummary, ItemAvailability, StoreSummary
from bazaar.checkout import (
    CheckoutOutcome,
    CheckoutRequest,
    ClientTotals,
    GroupOutcome,
    StoreGroup,
)
from bazaar.domain import Address, AppliedOffer, BillingResult, CartItem, Offer, Recipient
from bazaar.pricing import BillingRequest


# ═══════════════════════════════════════════════════════════════════════════════
# Shared
# ═══════════════════════════════════════════════════════════════════════════════


class CartItemIn(BaseModel):
    product_id: str
    quantity: int

    def to_domain(self) -> CartItem:
        return CartItem(self.product_id, self.quantity)


class AddressIn(BaseModel):
    street1: str
    street2: str = ""
    city: str
    state: str = ""
    postal_code: str
    country: str = ""

    def to_domain(self) -> Address:
        return Address(
            street1=self.street1,
            street2=self.street2,
            city=self.city,
            state=self.state,
            postal_code=self.postal_code,
            country=self.country,
        )


class RecipientIn(BaseModel):
    name: str
    phone: str

    def to_domain(self) -> Recipient:
        return Recipient(self.name, self.phone)


class ErrorOut(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None


class AppliedOfferOut(BaseModel):
    offer_id: str
    name: str
    type: str
    discount_amount: Decimal
    product_ids: list[str]

    @classmethod
    def from_domain(cls, applied: AppliedOffer) -> AppliedOfferOut:
        return cls(
            offer_id=applied.offer_id,
            name=applied.name,
            type=applied.type.value,
            discount_amount=applied.discount_amount,
            product_ids=list(applied.product_ids),
        )


class BillingOut(BaseModel):
    subtotal: Decimal
    shipping: Decimal
    discount: Decimal
    gst: Decimal
    total: Decimal
    applied_offers: list[AppliedOfferOut] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, billing: BillingResult) -> BillingOut:
        return cls(
            subtotal=billing.subtotal,
            shipping=billing.shipping,
            discount=billing.discount,
            gst=billing.gst,
            total=billing.total,
            applied_offers=[AppliedOfferOut.from_domain(a) for a in billing.applied_offers],
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout
# ═══════════════════════════════════════════════════════════════════════════════


class ClientTotalsIn(BaseModel):
    subtotal: Decimal
    shipping: Decimal
    discount: Decimal
    gst: Decimal
    total: Decimal

    def to_domain(self) -> ClientTotals:
        return ClientTotals(self.subtotal, self.shipping, self.discount, self.gst, self.total)


class StoreGroupIn(BaseModel):
    store_id: str
    items: list[CartItemIn]
    offer_codes: list[str] = Field(default_factory=list)
    client_totals: ClientTotalsIn | None = None

    def to_domain(self) -> StoreGroup:
        return StoreGroup(
            store_id=self.store_id,
            items=tuple(i.to_domain() for i in self.items),
            offer_codes=tuple(self.offer_codes),
            client_totals=self.client_totals.to_domain() if self.client_totals else None,
        )


class CheckoutIn(BaseModel):
    customer_id: str
    groups: list[StoreGroupIn]
    address: AddressIn
    recipient: RecipientIn

    def to_domain(self) -> CheckoutRequest:
        return CheckoutRequest(
            customer_id=self.customer_id,
            groups=tuple(g.to_domain() for g in self.groups),
            address=self.address.to_domain(),
            recipient=self.recipient.to_domain(),
        )


class GroupOut(BaseModel):
    store_id: str
    ok: bool
    order_id: str | None = None
    payment_intent_id: str | None = None
    amount: int | None = None
    currency: str | None = None
    billing: BillingOut | None = None
    error: ErrorOut | None = None

    @classmethod
    def from_domain(cls, outcome: GroupOutcome) -> GroupOut:
        match outcome.result:
            case Ok(receipt):
                return cls(
                    store_id=outcome.store_id,
                    ok=True,
                    order_id=receipt.order_id,
                    payment_intent_id=receipt.payment_intent_id,
                    amount=receipt.amount,
                    currency=receipt.currency,
                    billing=BillingOut.from_domain(receipt.billing),
                )
            case failed:
                return cls(
                    store_id=outcome.store_id,
                    ok=False,
                    error=ErrorOut(**failed.error.to_payload()),
                )


class CheckoutOut(BaseModel):
    groups: list[GroupOut]

    @classmethod
    def from_domain(cls, outcome: CheckoutOutcome) -> CheckoutOut:
        return cls(groups=[GroupOut.from_domain(g) for g in outcome.groups])


# ═══════════════════════════════════════════════════════════════════════════════
# Billing preview & cart
# ═══════════════════════════════════════════════════════════════════════════════


class BillingPreviewIn(BaseModel):
    store_id: str
    items: list[CartItemIn]
    address: AddressIn
    offer_codes: list[str] = Field(default_factory=list)

    def to_domain(self) -> BillingRequest:
        return BillingRequest(
            store_id=self.store_id,
            items=tuple(i.to_domain() for i in self.items),
            address=self.address.to_domain(),
            offer_codes=tuple(self.offer_codes),
        )


class ValidateItemIn(BaseModel):
    product_id: str
    quantity: int


class ItemAvailabilityOut(BaseModel):
    product_id: str
    store_id: str
    requested: int
    available: int
    unit_price: Decimal

    @classmethod
    def from_domain(cls, item: ItemAvailability) -> ItemAvailabilityOut:
        return cls(
            product_id=item.product_id,
            store_id=item.store_id,
            requested=item.requested,
            available=item.available,
            unit_price=item.unit_price,
        )


class CartSummaryIn(BaseModel):
    items: list[CartItemIn]
    address: AddressIn
    offer_codes: dict[str, list[str]] = Field(default_factory=dict)


class StoreSummaryOut(BaseModel):
    store_id: str
    store_name: str
    items: list[CartItemIn]
    billing: BillingOut | None = None
    error: ErrorOut | None = None

    @classmethod
    def from_domain(cls, summary: StoreSummary) -> StoreSummaryOut:
        return cls(
            store_id=summary.store_id,
            store_name=summary.store_name,
            items=[CartItemIn(product_id=i.product_id, quantity=i.quantity) for i in summary.items],
            billing=BillingOut.from_domain(summary.billing) if summary.billing else None,
            error=ErrorOut(**summary.error.to_payload()) if summary.error else None,
        )


class CartSummaryOut(BaseModel):
    stores: list[StoreSummaryOut]
    grand_total: Decimal

    @classmethod
    def from_domain(cls, summary: CartSummary) -> CartSummaryOut:
        return cls(
            stores=[StoreSummaryOut.from_domain(s) for s in summary.stores],
            grand_total=summary.grand_total,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Offers
# ═══════════════════════════════════════════════════════════════════════════════


class ValidateCodeIn(BaseModel):
    store_id: str
    code: str


class OfferOut(BaseModel):
    offer_id: str
    store_id: str
    name: str
    type: str
    requires_code: bool
    percentage: Decimal
    amount: Decimal
    buy_n: int
    get_k: int
    min_purchase_amount: Decimal | None = None
    min_item_count: int | None = None
    valid_until: datetime | None = None

    @classmethod
    def from_domain(cls, offer: Offer) -> OfferOut:
        return cls(
            offer_id=offer.offer_id,
            store_id=offer.store_id,
            name=offer.name,
            type=offer.type.value,
            requires_code=offer.requires_code,
            percentage=offer.params.percentage,
            amount=offer.params.amount,
            buy_n=offer.params.buy_n,
            get_k=offer.params.get_k,
            min_purchase_amount=offer.min_purchase_amount,
            min_item_count=offer.min_item_count,
            valid_until=offer.valid_until,
        )


__all__ = (
    "CartItemIn",
    "AddressIn",
    "RecipientIn",
    "ErrorOut",
    "AppliedOfferOut",
    "BillingOut",
    "ClientTotalsIn",
    "StoreGroupIn",
    "CheckoutIn",
    "GroupOut",
    "CheckoutOut",
    "BillingPreviewIn",
    "ValidateItemIn",
    "ItemAvailabilityOut",
    "CartSummaryIn",
    "StoreSummaryOut",
    "CartSummaryOut",
    "ValidateCodeIn",
    "OfferOut",
)
