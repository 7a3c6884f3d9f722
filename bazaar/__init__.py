"""
bazaar — multi-tenant marketplace pricing and checkout.

    from bazaar import pricing as P    # Eligibility, discounts, shipping, billing
    from bazaar import checkout as CO  # Transactional multi-store checkout
    from bazaar import store as S      # SQLAlchemy persistence
    from bazaar import gateway as PG   # Payment intents
    from bazaar import graph as G      # Computation graphs
"""

from bazaar import graph
from bazaar import pricing
from bazaar import store
from bazaar import gateway
from bazaar import checkout
from bazaar import cart
from bazaar.config import Atomicity, CheckoutPolicy, GatewaySettings
from bazaar.errors import (
    CheckoutError,
    ValidationError,
    UndeliverableError,
    ConflictError,
    StockError,
    ConfigurationError,
    UpstreamError,
    PersistenceError,
    InternalConsistencyError,
)

__version__ = "0.1.0"

__all__ = (
    "graph",
    "pricing",
    "store",
    "gateway",
    "checkout",
    "cart",
    "Atomicity",
    "CheckoutPolicy",
    "GatewaySettings",
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
