"""
Fingerprint — a stable hash of what a checkout would buy.

Two submissions with the same customer, store, items, delivery address
and offer codes hash identically, whatever their item order or casing.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable

from bazaar.domain import Address, CartItem
from bazaar.pricing import merge_items, normalize_code

FINGERPRINT_VERSION = 1


def fingerprint(
    customer_id: str,
    store_id: str,
    items: Iterable[CartItem],
    address: Address,
    offer_codes: Iterable[str] = (),
) -> str:
    """
    SHA-256 hex of the canonical JSON document.

    Example:
        fingerprint("c1", "s1", [CartItem("p1", 2)], address)
    """
    document = {
        "v": FINGERPRINT_VERSION,
        "customer_id": customer_id.strip(),
        "store_id": store_id.strip(),
        "items": sorted([i.product_id, i.quantity] for i in merge_items(items)),
        "address": address.normalized(),
        "offer_codes": sorted({normalize_code(c) for c in offer_codes if normalize_code(c)}),
    }
    canonical = json.dumps(document, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()


def attempt_key(customer_id: str, fp: str) -> str:
    return f"checkout:{customer_id}:{fp}"


__all__ = ("FINGERPRINT_VERSION", "fingerprint", "attempt_key")
