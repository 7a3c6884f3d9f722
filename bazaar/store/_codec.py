"""
Codec — table rows ↔ domain values.

Money is stored as Numeric columns, or as decimal strings inside JSON
documents (shipping conditions, applied offers).
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from bazaar.domain import (
    Address,
    AppliedOffer,
    CostBasis,
    CostModifiers,
    DiscountParams,
    LocationKind,
    LocationPredicate,
    Offer,
    OfferType,
    Product,
    Recipient,
    Scope,
    ShippingCondition,
    ShippingRule,
    StoreAccount,
)
from bazaar.money import money
from bazaar.store._tables import (
    CollectionMemberTable,
    OfferTable,
    ProductTable,
    ShippingRuleTable,
    StoreTable,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


def product_from_row(row: ProductTable, collection_ids: Iterable[str] = ()) -> Product:
    return Product(
        product_id=row.id,
        store_id=row.store_id,
        name=row.name,
        price=money(row.price),
        stock=row.stock,
        reserved_stock=row.reserved_stock,
        tax_rate=money(row.tax_rate),
        tax_inclusive=row.tax_inclusive,
        is_active=row.is_active,
        tags=frozenset(row.tags or ()),
        collection_ids=frozenset(collection_ids),
    )


def product_to_rows(product: Product) -> list[ProductTable | CollectionMemberTable]:
    """The product row followed by one membership row per collection."""
    rows: list[ProductTable | CollectionMemberTable] = [
        ProductTable(
            id=product.product_id,
            store_id=product.store_id,
            name=product.name,
            price=product.price,
            stock=product.stock,
            reserved_stock=product.reserved_stock,
            tax_rate=product.tax_rate,
            tax_inclusive=product.tax_inclusive,
            is_active=product.is_active,
            tags=sorted(product.tags),
        )
    ]
    rows.extend(
        CollectionMemberTable(product_id=product.product_id, collection_id=cid)
        for cid in sorted(product.collection_ids)
    )
    return rows


def store_from_row(row: StoreTable) -> StoreAccount:
    return StoreAccount(
        store_id=row.id,
        name=row.name,
        platform_owned=row.platform_owned,
        settlement_account=row.settlement_account,
    )


def store_to_row(store: StoreAccount) -> StoreTable:
    return StoreTable(
        id=store.store_id,
        name=store.name,
        platform_owned=store.platform_owned,
        settlement_account=store.settlement_account,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Offers
# ═══════════════════════════════════════════════════════════════════════════════


def offer_from_row(row: OfferTable) -> Offer:
    return Offer(
        offer_id=row.id,
        store_id=row.store_id,
        name=row.name,
        type=OfferType(row.type),
        scope=Scope(
            store_wide=row.store_wide,
            product_ids=frozenset(row.product_ids or ()),
            collection_ids=frozenset(row.collection_ids or ()),
            tags=frozenset(row.tags or ()),
        ),
        params=DiscountParams(
            percentage=money(row.percentage),
            amount=money(row.amount),
            buy_n=row.buy_n,
            get_k=row.get_k,
        ),
        valid_from=row.valid_from,
        valid_until=row.valid_until,
        is_active=row.is_active,
        requires_code=row.requires_code,
        code=row.code,
        min_purchase_amount=(
            money(row.min_purchase_amount) if row.min_purchase_amount is not None else None
        ),
        min_item_count=row.min_item_count,
    )


def offer_to_row(offer: Offer) -> OfferTable:
    return OfferTable(
        id=offer.offer_id,
        store_id=offer.store_id,
        name=offer.name,
        type=offer.type.value,
        is_active=offer.is_active,
        requires_code=offer.requires_code,
        code=offer.code,
        valid_from=offer.valid_from,
        valid_until=offer.valid_until,
        min_purchase_amount=offer.min_purchase_amount,
        min_item_count=offer.min_item_count,
        store_wide=offer.scope.store_wide,
        product_ids=sorted(offer.scope.product_ids),
        collection_ids=sorted(offer.scope.collection_ids),
        tags=sorted(offer.scope.tags),
        percentage=offer.params.percentage,
        amount=offer.params.amount,
        buy_n=offer.params.buy_n,
        get_k=offer.params.get_k,
    )


def applied_offer_to_json(applied: AppliedOffer) -> dict[str, Any]:
    return {
        "offer_id": applied.offer_id,
        "name": applied.name,
        "type": applied.type.value,
        "discount_amount": str(applied.discount_amount),
        "product_ids": list(applied.product_ids),
        "params": {
            "percentage": str(applied.params.percentage),
            "amount": str(applied.params.amount),
            "buy_n": applied.params.buy_n,
            "get_k": applied.params.get_k,
        },
    }


# ═══════════════════════════════════════════════════════════════════════════════
# Shipping rules
# ═══════════════════════════════════════════════════════════════════════════════


def _predicate_from_json(data: dict[str, Any]) -> LocationPredicate:
    return LocationPredicate(
        kind=LocationKind(data["kind"]),
        city=data.get("city", ""),
        state=data.get("state", ""),
        country=data.get("country", ""),
    )


def _predicate_to_json(predicate: LocationPredicate) -> dict[str, Any]:
    data: dict[str, Any] = {"kind": predicate.kind.value}
    for name in ("city", "state", "country"):
        if value := getattr(predicate, name):
            data[name] = value
    return data


def condition_from_json(data: dict[str, Any]) -> ShippingCondition:
    mods = data.get("modifiers") or {}
    return ShippingCondition(
        when=tuple(_predicate_from_json(p) for p in data.get("when") or ()),
        base_cost=money(data.get("base_cost", "0")),
        basis=CostBasis(data.get("basis", CostBasis.PER_ORDER.value)),
        modifiers=CostModifiers(
            extra_per_item_enabled=bool(mods.get("extra_per_item_enabled", False)),
            free_item_count=int(mods.get("free_item_count", 0)),
            extra_per_item_cost=money(mods.get("extra_per_item_cost", "0")),
            discount_enabled=bool(mods.get("discount_enabled", False)),
            discount_threshold=money(mods.get("discount_threshold", "0")),
            discount_percentage=money(mods.get("discount_percentage", "0")),
            cap_enabled=bool(mods.get("cap_enabled", False)),
            cap_amount=money(mods.get("cap_amount", "0")),
        ),
    )


def condition_to_json(condition: ShippingCondition) -> dict[str, Any]:
    mods = condition.modifiers
    return {
        "when": [_predicate_to_json(p) for p in condition.when],
        "base_cost": str(condition.base_cost),
        "basis": condition.basis.value,
        "modifiers": {
            "extra_per_item_enabled": mods.extra_per_item_enabled,
            "free_item_count": mods.free_item_count,
            "extra_per_item_cost": str(mods.extra_per_item_cost),
            "discount_enabled": mods.discount_enabled,
            "discount_threshold": str(mods.discount_threshold),
            "discount_percentage": str(mods.discount_percentage),
            "cap_enabled": mods.cap_enabled,
            "cap_amount": str(mods.cap_amount),
        },
    }


def rule_from_row(row: ShippingRuleTable) -> ShippingRule:
    return ShippingRule(
        rule_id=row.id,
        store_id=row.store_id,
        name=row.name,
        conditions=tuple(condition_from_json(c) for c in row.conditions or ()),
        is_active=row.is_active,
        grouping_enabled=row.grouping_enabled,
        international_allowed=row.international_allowed,
    )


def rule_to_row(rule: ShippingRule) -> ShippingRuleTable:
    return ShippingRuleTable(
        id=rule.rule_id,
        store_id=rule.store_id,
        name=rule.name,
        is_active=rule.is_active,
        grouping_enabled=rule.grouping_enabled,
        international_allowed=rule.international_allowed,
        conditions=[condition_to_json(c) for c in rule.conditions],
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


def address_to_json(address: Address) -> dict[str, str]:
    return {
        "street1": address.street1,
        "street2": address.street2,
        "city": address.city,
        "state": address.state,
        "postal_code": address.postal_code,
        "country": address.country,
    }


def recipient_to_json(recipient: Recipient) -> dict[str, str]:
    return {"name": recipient.name, "phone": recipient.phone}


__all__ = (
    "product_from_row",
    "product_to_rows",
    "store_from_row",
    "store_to_row",
    "offer_from_row",
    "offer_to_row",
    "applied_offer_to_json",
    "condition_from_json",
    "condition_to_json",
    "rule_from_row",
    "rule_to_row",
    "address_to_json",
    "recipient_to_json",
)
