"""
Config — checkout behavior and gateway settings.

Fluent, immutable builders: each `with_*` returns a new instance.

    policy = (
        CheckoutPolicy()
        .with_domestic_country("India")
        .with_duplicate_window(minutes=15)
        .with_billing_check()
        .with_atomicity(Atomicity.ALL_OR_NOTHING)
    )

    gateway = GatewaySettings.from_env()
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import timedelta
from enum import Enum, auto

from bazaar.domain import normalize_country


MIN_DUPLICATE_WINDOW = timedelta(minutes=10)
MAX_DUPLICATE_WINDOW = timedelta(minutes=30)
DEFAULT_GATEWAY_URL = "https://api.razorpay.com/v1"


# ═══════════════════════════════════════════════════════════════════════════════
# Atomicity — multi-store checkout semantics
# ═══════════════════════════════════════════════════════════════════════════════


class Atomicity(Enum):
    """
    PER_STORE: every store group commits on its own; partial success allowed.
    ALL_OR_NOTHING: committed groups are compensated when a sibling fails.
    """

    PER_STORE = auto()
    ALL_OR_NOTHING = auto()


# ═══════════════════════════════════════════════════════════════════════════════
# CheckoutPolicy
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CheckoutPolicy:
    """
    Engine configuration.

    Note: duplicate_window is clamped to 10..30 minutes.
    """

    domestic_country: str = "india"
    currency: str = "INR"
    duplicate_window: timedelta = MIN_DUPLICATE_WINDOW
    billing_check: bool = False
    tax_shipping: bool = False
    atomicity: Atomicity = Atomicity.PER_STORE
    concurrency: int = 4

    def with_domestic_country(self, country: str) -> CheckoutPolicy:
        return replace(self, domestic_country=normalize_country(country))

    def with_currency(self, currency: str) -> CheckoutPolicy:
        return replace(self, currency=currency.upper())

    def with_duplicate_window(
        self,
        *,
        minutes: float | None = None,
        delta: timedelta | None = None,
    ) -> CheckoutPolicy:
        """
        Set how long an attempt blocks identical resubmissions.

        Example:
            .with_duplicate_window(minutes=20)
        """
        window = delta if delta is not None else timedelta(minutes=minutes or 0)
        window = min(max(window, MIN_DUPLICATE_WINDOW), MAX_DUPLICATE_WINDOW)
        return replace(self, duplicate_window=window)

    def with_billing_check(self, enabled: bool = True) -> CheckoutPolicy:
        """Reject checkouts whose client totals differ from the server's."""
        return replace(self, billing_check=enabled)

    def with_shipping_tax(self, enabled: bool = True) -> CheckoutPolicy:
        """Tax shipping at the highest line rate."""
        return replace(self, tax_shipping=enabled)

    def with_atomicity(self, atomicity: Atomicity) -> CheckoutPolicy:
        return replace(self, atomicity=atomicity)

    def with_concurrency(self, concurrency: int) -> CheckoutPolicy:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        return replace(self, concurrency=concurrency)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> CheckoutPolicy:
        """
        Build from BAZAAR_* variables; unset ones keep defaults.

            BAZAAR_DOMESTIC_COUNTRY, BAZAAR_CURRENCY,
            BAZAAR_DUPLICATE_WINDOW_MINUTES, BAZAAR_BILLING_CHECK,
            BAZAAR_TAX_SHIPPING, BAZAAR_ATOMICITY, BAZAAR_CONCURRENCY
        """
        env = os.environ if env is None else env
        policy = cls()
        if country := env.get("BAZAAR_DOMESTIC_COUNTRY"):
            policy = policy.with_domestic_country(country)
        if currency := env.get("BAZAAR_CURRENCY"):
            policy = policy.with_currency(currency)
        if window := env.get("BAZAAR_DUPLICATE_WINDOW_MINUTES"):
            policy = policy.with_duplicate_window(minutes=float(window))
        if flag := env.get("BAZAAR_BILLING_CHECK"):
            policy = policy.with_billing_check(_truthy(flag))
        if flag := env.get("BAZAAR_TAX_SHIPPING"):
            policy = policy.with_shipping_tax(_truthy(flag))
        if atomicity := env.get("BAZAAR_ATOMICITY"):
            policy = policy.with_atomicity(Atomicity[atomicity.strip().upper()])
        if concurrency := env.get("BAZAAR_CONCURRENCY"):
            policy = policy.with_concurrency(int(concurrency))
        return policy


# ═══════════════════════════════════════════════════════════════════════════════
# GatewaySettings
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class GatewaySettings:
    base_url: str = DEFAULT_GATEWAY_URL
    key_id: str = ""
    key_secret: str = ""
    timeout: float = 10.0
    retries: int = 2
    retry_delay: float = 0.2

    def with_credentials(self, key_id: str, key_secret: str) -> GatewaySettings:
        return replace(self, key_id=key_id, key_secret=key_secret)

    def with_timeout(self, seconds: float) -> GatewaySettings:
        return replace(self, timeout=seconds)

    def with_retries(self, times: int, delay: float = 0.2) -> GatewaySettings:
        if times < 0:
            raise ValueError("retries must be >= 0")
        return replace(self, retries=times, retry_delay=delay)

    @property
    def configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> GatewaySettings:
        env = os.environ if env is None else env
        settings = cls(
            base_url=env.get("BAZAAR_GATEWAY_URL", DEFAULT_GATEWAY_URL),
            key_id=env.get("BAZAAR_GATEWAY_KEY_ID", ""),
            key_secret=env.get("BAZAAR_GATEWAY_KEY_SECRET", ""),
        )
        if timeout := env.get("BAZAAR_GATEWAY_TIMEOUT"):
            settings = settings.with_timeout(float(timeout))
        if retries := env.get("BAZAAR_GATEWAY_RETRIES"):
            settings = settings.with_retries(int(retries))
        return settings


def _truthy(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


__all__ = (
    "MIN_DUPLICATE_WINDOW",
    "MAX_DUPLICATE_WINDOW",
    "Atomicity",
    "CheckoutPolicy",
    "GatewaySettings",
)
