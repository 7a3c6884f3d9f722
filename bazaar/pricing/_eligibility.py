"""
Eligibility — does a rule apply to a product?

Pure reads only: a missing product is ineligible, never an error.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol

from bazaar.domain import ProductFacts, Scope


class Targeted(Protocol):
    """Anything scoped to products and optionally gated by a code."""

    @property
    def scope(self) -> Scope: ...

    @property
    def requires_code(self) -> bool: ...

    @property
    def code(self) -> str | None: ...


def normalize_code(code: str) -> str:
    return code.strip().casefold()


def code_unlocked(target: Targeted, codes: Iterable[str]) -> bool:
    """True unless the target requires a code that none of `codes` matches."""
    if not target.requires_code:
        return True
    if not target.code:
        return False
    wanted = normalize_code(target.code)
    return any(normalize_code(c) == wanted for c in codes)


def in_scope(scope: Scope, facts: ProductFacts) -> bool:
    if scope.store_wide:
        return True
    return (
        facts.product_id in scope.product_ids
        or not scope.collection_ids.isdisjoint(facts.collection_ids)
        or not scope.tags.isdisjoint(facts.tags)
    )


def is_eligible(
    product_id: str,
    target: Targeted,
    codes: Iterable[str],
    facts: Mapping[str, ProductFacts],
) -> bool:
    """
    Resolve eligibility of one product for an offer-like target.

    Example:
        is_eligible("p1", offer, ["SAVE10"], {"p1": product.facts})
    """
    if not code_unlocked(target, codes):
        return False
    if target.scope.store_wide:
        return True
    product = facts.get(product_id)
    if product is None:
        return False
    return in_scope(target.scope, product)


__all__ = (
    "Targeted",
    "normalize_code",
    "code_unlocked",
    "in_scope",
    "is_eligible",
)
