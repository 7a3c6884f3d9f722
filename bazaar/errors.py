"""
Errors — structured checkout failures.

Every failure that can reach a caller is a CheckoutError subclass with a
stable `code`, a human `message` and optional `details`. Entry points turn
them into kungfu Results; the HTTP layer turns them into payloads.

    try:
        ...
    except CheckoutError as e:
        return Error(e)
"""

from __future__ import annotations

from typing import Any, ClassVar


# ═══════════════════════════════════════════════════════════════════════════════
# Base
# ═══════════════════════════════════════════════════════════════════════════════


class CheckoutError(Exception):
    """Base for all structured engine errors."""

    default_code: ClassVar[str] = "checkout_error"
    http_status: ClassVar[int] = 400

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code or self.default_code
        self.message = message
        self.details: dict[str, Any] = details or {}

    def to_payload(self) -> dict[str, Any]:
        """Caller-facing `{code, message, details?}`."""
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


# ═══════════════════════════════════════════════════════════════════════════════
# Taxonomy
# ═══════════════════════════════════════════════════════════════════════════════


class ValidationError(CheckoutError):
    """Malformed or missing input. Never retried."""

    default_code = "validation_error"
    http_status = 422


class UndeliverableError(ValidationError):
    """The delivery address cannot be served by a line's shipping rule."""

    default_code = "undeliverable_address"

    def __init__(self, store_id: str, country: str) -> None:
        super().__init__(
            f"Cannot ship to this address from store {store_id}",
            details={"store_id": store_id, "country": country},
        )


class ConflictError(CheckoutError):
    """Duplicate checkout, or client totals that disagree with the server."""

    default_code = "duplicate_checkout"
    http_status = 409

    @classmethod
    def duplicate(
        cls,
        fingerprint: str,
        prior_order_id: str | None,
    ) -> ConflictError:
        if prior_order_id is None:
            message = "An identical checkout is already in progress"
        else:
            message = f"An identical checkout already created order {prior_order_id}"
        return cls(
            message,
            details={"fingerprint": fingerprint, "prior_order_id": prior_order_id},
        )

    @classmethod
    def billing_mismatch(cls, field: str, client: str, server: str) -> ConflictError:
        return cls(
            f"Billing {field} changed since the cart was priced",
            code="billing_mismatch",
            details={"field": field, "client": client, "server": server},
        )

    @classmethod
    def aborted(cls, store_id: str, failed_store_ids: list[str]) -> ConflictError:
        """A committed store group undone because a sibling group failed."""
        return cls(
            f"Order for store {store_id} was canceled because another store failed",
            code="checkout_aborted",
            details={"store_id": store_id, "failed_store_ids": failed_store_ids},
        )

    @property
    def prior_order_id(self) -> str | None:
        return self.details.get("prior_order_id")


class StockError(CheckoutError):
    """Insufficient stock at lock time."""

    default_code = "insufficient_stock"
    http_status = 409

    def __init__(self, product_id: str, requested: int, available: int) -> None:
        super().__init__(
            f"Only {available} unit(s) of product {product_id} available",
            details={
                "product_id": product_id,
                "requested": requested,
                "available": available,
            },
        )
        self.product_id = product_id
        self.available = available


class ConfigurationError(CheckoutError):
    """A store lacks required payment-gateway linkage."""

    default_code = "store_misconfigured"
    http_status = 422


class UpstreamError(CheckoutError):
    """Payment gateway failed or answered with an invalid shape."""

    default_code = "payment_gateway_error"
    http_status = 502

    def __init__(
        self,
        message: str,
        *,
        retryable: bool = False,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.retryable = retryable


class PersistenceError(CheckoutError):
    """Storage backend failure outside a business rule."""

    default_code = "storage_error"
    http_status = 503


class InternalConsistencyError(CheckoutError):
    """
    Engine invariant violated (transfer sums, rounding drift).

    Note: details are logged, never sent to callers.
    """

    default_code = "internal_error"
    http_status = 500

    def to_payload(self) -> dict[str, Any]:
        return {"code": self.code, "message": "Checkout failed, please try again later"}


__all__ = (
    "CheckoutError",
    "ValidationError",
    "UndeliverableError",
    "ConflictError",
    "StockError",
    "ConfigurationError",
    "UpstreamError",
    "PersistenceError",
    "InternalConsistencyError",
)
