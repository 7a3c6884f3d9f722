"""
Shipping engine — rule grouping and a fixed cost evaluator.

Cost models are closed sets of modifier fields; nothing is evaluated
from stored text.

    cost = compute_shipping(store_id, lines, address, assignments, "india")
    if cost is None:
        ...  # undeliverable
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from bazaar.domain import (
    Address,
    CartLine,
    CostBasis,
    LocationKind,
    LocationPredicate,
    ShippingCondition,
    ShippingRule,
    normalize_country,
    normalize_text,
)
from bazaar.log import get_logger
from bazaar.money import HUNDRED, ZERO, Money


logger = get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Location matching
# ═══════════════════════════════════════════════════════════════════════════════


def is_international(address: Address, domestic_country: str) -> bool:
    """An empty country is treated as domestic."""
    country = normalize_country(address.country)
    return bool(country) and country != normalize_country(domestic_country)


def matches(predicate: LocationPredicate, address: Address, domestic_country: str) -> bool:
    target = address.normalized()

    def same(field: str) -> bool:
        return target[field] == normalize_text(getattr(predicate, field))

    match predicate.kind:
        case LocationKind.CITY:
            return same("city") and same("state") and same("country")
        case LocationKind.STATE:
            return same("state") and same("country")
        case LocationKind.COUNTRY:
            return same("country")
        case LocationKind.INTERNATIONAL:
            return is_international(address, domestic_country)
        case _:
            return False


def select_condition(
    rule: ShippingRule,
    address: Address,
    domestic_country: str,
) -> ShippingCondition | None:
    """First condition whose predicates all match; else the first catch-all."""
    for condition in rule.conditions:
        if condition.when and all(
            matches(p, address, domestic_country) for p in condition.when
        ):
            return condition
    return next((c for c in rule.conditions if c.is_default), None)


# ═══════════════════════════════════════════════════════════════════════════════
# Cost formula
# ═══════════════════════════════════════════════════════════════════════════════


def evaluate(condition: ShippingCondition, item_count: int, subtotal: Money) -> Money:
    """
    base → extra items → threshold discount → cap.

    Example:
        base 40, extra 10/item after 2 free, 5 items → 40 + 3 * 10 = 70
    """
    mods = condition.modifiers

    cost = condition.base_cost
    if condition.basis is CostBasis.PER_UNIT:
        cost = cost * item_count

    if mods.extra_per_item_enabled:
        extra_items = max(0, item_count - mods.free_item_count)
        cost += extra_items * mods.extra_per_item_cost

    if mods.discount_enabled and subtotal > mods.discount_threshold:
        cost = cost * (HUNDRED - mods.discount_percentage) / HUNDRED

    if mods.cap_enabled:
        cost = min(cost, mods.cap_amount)

    return max(cost, ZERO)


# ═══════════════════════════════════════════════════════════════════════════════
# Grouping
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ShippingGroup:
    rule: ShippingRule
    lines: tuple[CartLine, ...]

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def subtotal(self) -> Money:
        return sum((line.amount for line in self.lines), ZERO)


class Undeliverable(Exception):
    """A line's rule cannot ship to the address."""

    def __init__(self, product_id: str, rule_id: str) -> None:
        super().__init__(f"Rule {rule_id} of product {product_id} does not ship abroad")
        self.product_id = product_id
        self.rule_id = rule_id


def group_lines(
    store_id: str,
    lines: Sequence[CartLine],
    address: Address,
    assignments: Mapping[str, ShippingRule],
    domestic_country: str,
) -> list[ShippingGroup]:
    """
    Partition lines by rule.

    Raises Undeliverable as soon as one line cannot ship abroad.
    """
    international = is_international(address, domestic_country)
    grouped: dict[str, list[CartLine]] = {}
    rules: dict[str, ShippingRule] = {}
    groups: list[ShippingGroup] = []

    for line in lines:
        rule = assignments.get(line.product_id)
        if rule is None or not rule.is_active or rule.store_id != store_id:
            continue
        if international and not rule.international_allowed:
            raise Undeliverable(line.product_id, rule.rule_id)

        if rule.grouping_enabled:
            grouped.setdefault(rule.rule_id, []).append(line)
            rules[rule.rule_id] = rule
        else:
            groups.append(ShippingGroup(rule, (line,)))

    bundled = [ShippingGroup(rules[rid], tuple(group)) for rid, group in grouped.items()]
    return bundled + groups


# ═══════════════════════════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════════════════════════


def compute_shipping(
    store_id: str,
    lines: Sequence[CartLine],
    address: Address,
    assignments: Mapping[str, ShippingRule],
    domestic_country: str,
) -> Money | None:
    """Total shipping for a store group, or None when undeliverable."""
    try:
        groups = group_lines(store_id, lines, address, assignments, domestic_country)
    except Undeliverable as e:
        logger.info(
            "shipping_undeliverable",
            store_id=store_id,
            product_id=e.product_id,
            rule_id=e.rule_id,
            country=address.country,
        )
        return None

    total = ZERO
    for group in groups:
        condition = select_condition(group.rule, address, domestic_country)
        if condition is None:
            continue
        total += evaluate(condition, group.item_count, group.subtotal)
    return total


__all__ = (
    "ShippingGroup",
    "Undeliverable",
    "is_international",
    "matches",
    "select_condition",
    "evaluate",
    "group_lines",
    "compute_shipping",
)
