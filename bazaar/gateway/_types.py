"""
Gateway types — payment intents with split settlement.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True, slots=True)
class Transfer:
    """Share of an intent settled to a seller's linked account, in minor units."""

    account: str
    amount: int
    currency: str


@dataclass(frozen=True, slots=True)
class PaymentIntentRequest:
    """
    Note: amount is in minor units (paise, cents); `receipt` carries the
    order id and doubles as the gateway idempotency key.
    """

    amount: int
    currency: str
    receipt: str
    transfers: tuple[Transfer, ...] = ()
    notes: dict[str, str] = field(default_factory=dict)

    @property
    def transferred(self) -> int:
        return sum(t.amount for t in self.transfers)


@dataclass(frozen=True, slots=True)
class PaymentIntent:
    intent_id: str
    status: str
    amount: int
    currency: str


class Gateway(Protocol):
    """
    Payment gateway client.

    Raises UpstreamError for any failure: transport, non-2xx, invalid
    JSON or a response without an id.
    """

    async def create_payment_intent(self, request: PaymentIntentRequest) -> PaymentIntent: ...


__all__ = ("Transfer", "PaymentIntentRequest", "PaymentIntent", "Gateway")
