"""
Checkout — transactional multi-store checkout.

    from bazaar import checkout as CO

    checkout = CO.Checkout(session_factory, gateway, policy=policy)

    result = await checkout.run(
        CO.CheckoutRequest(
            customer_id="c1",
            groups=(CO.StoreGroup("s1", (CartItem("p1", 2),)),),
            address=address,
            recipient=Recipient("Asha", "+91 98450 00000"),
        )
    )

Architecture:

    CheckoutRequest
         │
         ▼
    validate_request ──► batch_all(store groups)
                               │ (one per store, concurrently)
                               ▼
                  fingerprint → guard (duplicate graph)
                               │
                               ▼
                  place_order (one transaction)
                  bill → reserve → persist → payment intent
                               │
                               ▼
                  commit → notify (background)

With Atomicity.ALL_OR_NOTHING, committed groups are canceled in reverse
order when any sibling fails.
"""

from bazaar.checkout._types import (
    CheckoutStage,
    Progress,
    ClientTotals,
    StoreGroup,
    CheckoutRequest,
    CheckoutReceipt,
    GroupOutcome,
    CheckoutOutcome,
)
from bazaar.checkout._fingerprint import (
    FINGERPRINT_VERSION,
    fingerprint,
    attempt_key,
)
from bazaar.checkout._guard import (
    GuardSpec,
    FetchAttemptNode,
    StoreFailureNode,
    LiveAttemptNode,
    ReleasedAttemptNode,
    VacantNode,
    Claimed,
    Denied,
    Verdict,
    GuardVerdict,
    GuardResultNode,
    guard,
)
from bazaar.checkout._notify import (
    Notifier,
    LoggingNotifier,
    WebhookNotifier,
    Dispatcher,
)
from bazaar.checkout._transaction import (
    Placement,
    Environment,
    check_client_totals,
    settlement_transfers,
    place_order,
)
from bazaar.checkout._orchestrator import (
    Checkout,
    new_order_id,
    validate_request,
    validate_group,
    as_checkout_error,
)

__all__ = (
    # Types
    "CheckoutStage",
    "Progress",
    "ClientTotals",
    "StoreGroup",
    "CheckoutRequest",
    "CheckoutReceipt",
    "GroupOutcome",
    "CheckoutOutcome",
    # Fingerprint
    "FINGERPRINT_VERSION",
    "fingerprint",
    "attempt_key",
    # Duplicate guard
    "GuardSpec",
    "FetchAttemptNode",
    "StoreFailureNode",
    "LiveAttemptNode",
    "ReleasedAttemptNode",
    "VacantNode",
    "Claimed",
    "Denied",
    "Verdict",
    "GuardVerdict",
    "GuardResultNode",
    "guard",
    # Notifications
    "Notifier",
    "LoggingNotifier",
    "WebhookNotifier",
    "Dispatcher",
    # Transaction
    "Placement",
    "Environment",
    "check_client_totals",
    "settlement_transfers",
    "place_order",
    # Orchestrator
    "Checkout",
    "new_order_id",
    "validate_request",
    "validate_group",
    "as_checkout_error",
)
