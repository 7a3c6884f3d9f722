"""
Gateway — payment-intent creation with split settlement.

    from bazaar import gateway as PG

    gateway = PG.HttpGateway(GatewaySettings.from_env())
    intent = await gateway.create_payment_intent(
        PG.PaymentIntentRequest(
            amount=52200,
            currency="INR",
            receipt=order_id,
            transfers=(PG.Transfer("acc_seller", 52200, "INR"),),
        )
    )
"""

from bazaar.gateway._types import (
    Transfer,
    PaymentIntentRequest,
    PaymentIntent,
    Gateway,
)
from bazaar.gateway._http import HttpGateway

__all__ = (
    "Transfer",
    "PaymentIntentRequest",
    "PaymentIntent",
    "Gateway",
    "HttpGateway",
)
