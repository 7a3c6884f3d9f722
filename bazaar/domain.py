"""
Domain — marketplace pricing and checkout.

Immutable value objects shared by the pricing engines, the stores and the
checkout orchestrator. Catalog rows are snapshotted into these types at
computation time; nothing here talks to a database.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from bazaar.money import ZERO, Money


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class StoreAccount:
    """A seller and its settlement linkage at the payment gateway."""

    store_id: str
    name: str
    platform_owned: bool = False
    settlement_account: str | None = None


@dataclass(frozen=True, slots=True)
class ProductFacts:
    """What the eligibility resolver needs to know about a product."""

    product_id: str
    tags: frozenset[str] = frozenset()
    collection_ids: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class Product:
    product_id: str
    store_id: str
    name: str
    price: Money
    stock: int
    reserved_stock: int
    tax_rate: Money = ZERO
    tax_inclusive: bool = False
    is_active: bool = True
    tags: frozenset[str] = frozenset()
    collection_ids: frozenset[str] = frozenset()

    @property
    def available(self) -> int:
        return max(0, self.stock - self.reserved_stock)

    @property
    def facts(self) -> ProductFacts:
        return ProductFacts(self.product_id, self.tags, self.collection_ids)

    def to_line(self, quantity: int) -> CartLine:
        return CartLine(
            product_id=self.product_id,
            store_id=self.store_id,
            quantity=quantity,
            unit_price=self.price,
            tax_rate=self.tax_rate,
            tax_inclusive=self.tax_inclusive,
            tags=self.tags,
            collection_ids=self.collection_ids,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CartItem:
    """What the client submits: ids and quantities only."""

    product_id: str
    quantity: int


@dataclass(frozen=True, slots=True)
class CartLine:
    """Priced snapshot of one cart item, taken from the catalog."""

    product_id: str
    store_id: str
    quantity: int
    unit_price: Money
    tax_rate: Money = ZERO
    tax_inclusive: bool = False
    tags: frozenset[str] = frozenset()
    collection_ids: frozenset[str] = frozenset()

    @property
    def amount(self) -> Money:
        return self.unit_price * self.quantity

    @property
    def facts(self) -> ProductFacts:
        return ProductFacts(self.product_id, self.tags, self.collection_ids)


@dataclass(frozen=True, slots=True)
class Address:
    street1: str
    city: str
    state: str
    postal_code: str
    country: str
    street2: str = ""

    def normalized(self) -> dict[str, str]:
        """Trimmed, casefolded fields; the form used for hashing and matching."""
        return {
            "street1": normalize_text(self.street1),
            "street2": normalize_text(self.street2),
            "city": normalize_text(self.city),
            "state": normalize_text(self.state),
            "postal_code": normalize_text(self.postal_code),
            "country": normalize_text(self.country),
        }


@dataclass(frozen=True, slots=True)
class Recipient:
    name: str
    phone: str


def normalize_text(value: str | None) -> str:
    return (value or "").strip().casefold()


def normalize_country(value: str | None) -> str:
    return normalize_text(value)


# ═══════════════════════════════════════════════════════════════════════════════
# Offers
# ═══════════════════════════════════════════════════════════════════════════════


class OfferType(Enum):
    BUY_N_GET_K_FREE = "buy_n_get_k_free"
    PERCENT_OFF = "percent_off"
    FIXED_AMOUNT_OFF = "fixed_amount_off"


@dataclass(frozen=True, slots=True)
class Scope:
    """Which products a rule targets. Criteria are OR-ed."""

    store_wide: bool = False
    product_ids: frozenset[str] = frozenset()
    collection_ids: frozenset[str] = frozenset()
    tags: frozenset[str] = frozenset()

    @classmethod
    def everything(cls) -> Scope:
        return cls(store_wide=True)


@dataclass(frozen=True, slots=True)
class DiscountParams:
    percentage: Money = ZERO
    amount: Money = ZERO
    buy_n: int = 0
    get_k: int = 0


@dataclass(frozen=True, slots=True)
class Offer:
    offer_id: str
    store_id: str
    name: str
    type: OfferType
    scope: Scope
    params: DiscountParams
    valid_from: datetime
    valid_until: datetime | None = None
    is_active: bool = True
    requires_code: bool = False
    code: str | None = None
    min_purchase_amount: Money | None = None
    min_item_count: int | None = None

    def is_live(self, now: datetime) -> bool:
        if not self.is_active or now < self.valid_from:
            return False
        return self.valid_until is None or now < self.valid_until


@dataclass(frozen=True, slots=True)
class AppliedOffer:
    """An offer that produced a discount, with the amount it produced."""

    offer_id: str
    name: str
    type: OfferType
    discount_amount: Money
    product_ids: tuple[str, ...]
    params: DiscountParams


@dataclass(frozen=True, slots=True)
class LineDiscountState:
    """
    Working state of one line between discount passes.

    Note: passes never mutate a state; they return a new one.
    """

    line: CartLine
    current_price: Money
    current_quantity: int
    discount_accumulated: Money = ZERO

    @classmethod
    def initial(cls, line: CartLine) -> LineDiscountState:
        return cls(line, line.unit_price, line.quantity, ZERO)

    @property
    def product_id(self) -> str:
        return self.line.product_id

    @property
    def amount(self) -> Money:
        return self.current_price * self.current_quantity

    def reduce_price(self, per_unit: Money) -> LineDiscountState:
        return replace(
            self,
            current_price=self.current_price - per_unit,
            discount_accumulated=self.discount_accumulated + per_unit * self.current_quantity,
        )

    def give_free(self, units: int) -> LineDiscountState:
        return replace(
            self,
            current_quantity=self.current_quantity - units,
            discount_accumulated=self.discount_accumulated + self.current_price * units,
        )


@dataclass(frozen=True, slots=True)
class DiscountOutcome:
    total_discount: Money
    applied_offers: tuple[AppliedOffer, ...]
    line_states: tuple[LineDiscountState, ...]


# ═══════════════════════════════════════════════════════════════════════════════
# Shipping
# ═══════════════════════════════════════════════════════════════════════════════


class LocationKind(Enum):
    CITY = "city"
    STATE = "state"
    COUNTRY = "country"
    INTERNATIONAL = "international"


@dataclass(frozen=True, slots=True)
class LocationPredicate:
    """`inside` a city/state/country, or the `international` token."""

    kind: LocationKind
    city: str = ""
    state: str = ""
    country: str = ""

    @classmethod
    def international(cls) -> LocationPredicate:
        return cls(LocationKind.INTERNATIONAL)


class CostBasis(Enum):
    PER_ORDER = "per_order"
    PER_UNIT = "per_unit"


@dataclass(frozen=True, slots=True)
class CostModifiers:
    extra_per_item_enabled: bool = False
    free_item_count: int = 0
    extra_per_item_cost: Money = ZERO
    discount_enabled: bool = False
    discount_threshold: Money = ZERO
    discount_percentage: Money = ZERO
    cap_enabled: bool = False
    cap_amount: Money = ZERO


@dataclass(frozen=True, slots=True)
class ShippingCondition:
    when: tuple[LocationPredicate, ...]
    base_cost: Money
    modifiers: CostModifiers = field(default_factory=CostModifiers)
    basis: CostBasis = CostBasis.PER_ORDER

    @property
    def is_default(self) -> bool:
        return not self.when


@dataclass(frozen=True, slots=True)
class ShippingRule:
    rule_id: str
    store_id: str
    conditions: tuple[ShippingCondition, ...]
    name: str = ""
    is_active: bool = True
    grouping_enabled: bool = False
    international_allowed: bool = False


# ═══════════════════════════════════════════════════════════════════════════════
# Billing
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class BillingResult:
    """Reported money fields are rounded to cents."""

    subtotal: Money
    shipping: Money
    discount: Money
    gst: Money
    total: Money
    applied_offers: tuple[AppliedOffer, ...] = ()


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStatus(Enum):
    ORDER_CREATED = "Order Created"
    CONFIRMED = "Confirmed"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELED = "Canceled"
    FAILED = "Failed"

    @property
    def releases_checkout(self) -> bool:
        """A duplicate of a checkout that ended here may be retried."""
        return self in (OrderStatus.CANCELED, OrderStatus.FAILED)


@dataclass(frozen=True, slots=True)
class OrderLine:
    product_id: str
    quantity: int
    price: Money


@dataclass(frozen=True, slots=True)
class NewOrder:
    """Everything persisted for one store group in one transaction."""

    order_id: str
    customer_id: str
    store_id: str
    billing: BillingResult
    lines: tuple[OrderLine, ...]
    address: Address
    recipient: Recipient
    fingerprint: str


__all__ = (
    "StoreAccount",
    "ProductFacts",
    "Product",
    "CartItem",
    "CartLine",
    "Address",
    "Recipient",
    "normalize_text",
    "normalize_country",
    "OfferType",
    "Scope",
    "DiscountParams",
    "Offer",
    "AppliedOffer",
    "LineDiscountState",
    "DiscountOutcome",
    "LocationKind",
    "LocationPredicate",
    "CostBasis",
    "CostModifiers",
    "ShippingCondition",
    "ShippingRule",
    "BillingResult",
    "OrderStatus",
    "OrderLine",
    "NewOrder",
)
