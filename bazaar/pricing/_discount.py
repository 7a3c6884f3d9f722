"""
Discount engine — ordered, compounding offer passes.

Each offer is one pure pass over an immutable tuple of line states:

    states = initial_states(lines)
    for offer in prioritized(offers):
        result = apply_offer(offer, states, codes)
        states = result.states

A later pass sees the prices and quantities left by earlier passes.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from bazaar.domain import (
    AppliedOffer,
    CartLine,
    DiscountOutcome,
    LineDiscountState,
    Offer,
    OfferType,
)
from bazaar.errors import InternalConsistencyError
from bazaar.log import get_logger
from bazaar.money import ZERO, Money, percent_of, within_tolerance
from bazaar.pricing._eligibility import is_eligible


logger = get_logger(__name__)

type States = tuple[LineDiscountState, ...]


# ═══════════════════════════════════════════════════════════════════════════════
# Ordering
# ═══════════════════════════════════════════════════════════════════════════════

PRIORITY: dict[OfferType, int] = {
    OfferType.BUY_N_GET_K_FREE: 0,
    OfferType.PERCENT_OFF: 1,
    OfferType.FIXED_AMOUNT_OFF: 2,
}


def prioritized(offers: Iterable[Offer]) -> list[Offer]:
    """Free-unit offers first, then percentage, then fixed. Stable within a type."""
    return sorted(offers, key=lambda o: PRIORITY.get(o.type, len(PRIORITY)))


def initial_states(lines: Iterable[CartLine]) -> States:
    return tuple(LineDiscountState.initial(line) for line in lines)


# ═══════════════════════════════════════════════════════════════════════════════
# Single pass
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PassResult:
    states: States
    applied: AppliedOffer | None = None


def malformed(offer: Offer) -> bool:
    params = offer.params
    match offer.type:
        case OfferType.BUY_N_GET_K_FREE:
            return params.buy_n <= 0 or params.get_k <= 0
        case OfferType.PERCENT_OFF:
            return params.percentage <= 0
        case OfferType.FIXED_AMOUNT_OFF:
            return params.amount <= 0
        case _:
            return True


def qualifies(offer: Offer, lines: Sequence[CartLine]) -> bool:
    """Thresholds are checked on original prices and quantities."""
    if offer.min_purchase_amount is not None:
        if sum((line.amount for line in lines), ZERO) < offer.min_purchase_amount:
            return False
    if offer.min_item_count is not None:
        if sum(line.quantity for line in lines) < offer.min_item_count:
            return False
    return True


def apply_offer(offer: Offer, states: States, codes: Sequence[str]) -> PassResult:
    """Run one offer over the current states; never mutates `states`."""
    if malformed(offer):
        logger.debug("offer_skipped", offer_id=offer.offer_id, reason="malformed")
        return PassResult(states)

    facts = {s.product_id: s.line.facts for s in states}
    matched = [i for i, s in enumerate(states) if is_eligible(s.product_id, offer, codes, facts)]
    if not matched:
        return PassResult(states)
    if not qualifies(offer, [states[i].line for i in matched]):
        logger.debug("offer_skipped", offer_id=offer.offer_id, reason="threshold")
        return PassResult(states)

    # lines emptied by earlier offers still count toward thresholds
    eligible = [i for i in matched if states[i].current_quantity > 0]
    if not eligible:
        return PassResult(states)

    match offer.type:
        case OfferType.BUY_N_GET_K_FREE:
            updated = _give_free_units(offer, states, eligible)
        case OfferType.PERCENT_OFF:
            updated = _reduce_prices(
                states,
                eligible,
                lambda s: min(s.current_price, percent_of(s.current_price, offer.params.percentage)),
            )
        case OfferType.FIXED_AMOUNT_OFF:
            updated = _reduce_prices(
                states,
                eligible,
                lambda s: min(s.current_price, offer.params.amount),
            )
        case _:
            return PassResult(states)

    discount = sum(
        (updated[i].discount_accumulated - states[i].discount_accumulated for i in eligible),
        ZERO,
    )
    if discount <= 0:
        return PassResult(states)

    applied = AppliedOffer(
        offer_id=offer.offer_id,
        name=offer.name,
        type=offer.type,
        discount_amount=discount,
        product_ids=tuple(states[i].product_id for i in eligible if updated[i] != states[i]),
        params=offer.params,
    )
    return PassResult(updated, applied)


def _give_free_units(offer: Offer, states: States, eligible: list[int]) -> States:
    """Cheapest units go free first."""
    params = offer.params
    total_qty = sum(states[i].current_quantity for i in eligible)
    free_units = (total_qty // (params.buy_n + params.get_k)) * params.get_k

    updated = list(states)
    for i in sorted(eligible, key=lambda i: states[i].current_price):
        if free_units == 0:
            break
        units = min(updated[i].current_quantity, free_units)
        updated[i] = updated[i].give_free(units)
        free_units -= units
    return tuple(updated)


def _reduce_prices(
    states: States,
    eligible: list[int],
    per_unit: Callable[[LineDiscountState], Money],
) -> States:
    updated = list(states)
    for i in eligible:
        cut = per_unit(states[i])
        if cut > 0:
            updated[i] = states[i].reduce_price(cut)
    return tuple(updated)


# ═══════════════════════════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════════════════════════


def apply_offers(
    store_id: str,
    lines: Sequence[CartLine],
    offers: Iterable[Offer],
    codes: Sequence[str],
    now: datetime,
) -> DiscountOutcome:
    """
    Apply every live offer of the store in priority order.

    Raises InternalConsistencyError when per-line and per-offer totals drift
    apart by more than a cent.
    """
    live = [o for o in offers if o.store_id == store_id and o.is_live(now)]

    states = initial_states(lines)
    applied: list[AppliedOffer] = []
    for offer in prioritized(live):
        result = apply_offer(offer, states, codes)
        states = result.states
        if result.applied is not None:
            applied.append(result.applied)

    total = sum((s.discount_accumulated for s in states), ZERO)
    reported = sum((a.discount_amount for a in applied), ZERO)
    if not within_tolerance(total, reported):
        logger.error(
            "discount_conservation_violated",
            store_id=store_id,
            line_total=str(total),
            offer_total=str(reported),
        )
        raise InternalConsistencyError(
            "Discount totals disagree",
            details={"line_total": str(total), "offer_total": str(reported)},
        )

    return DiscountOutcome(
        total_discount=total,
        applied_offers=tuple(applied),
        line_states=states,
    )


__all__ = (
    "PRIORITY",
    "States",
    "PassResult",
    "prioritized",
    "initial_states",
    "malformed",
    "qualifies",
    "apply_offer",
    "apply_offers",
)
