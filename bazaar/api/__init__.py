"""
API — FastAPI app over checkout, billing preview, cart and offers.

    from bazaar.api import create_app

    app = create_app(session_factory, gateway, policy=policy)

Routes:
    POST /checkout                  multi-store checkout
    POST /billing/preview           price one store's cart
    POST /cart/validate-item        stock and activity check for one product
    POST /cart/summary              per-store billing for a mixed cart
    POST /offers/validate-code      resolve a store's offer code
    GET  /products/{id}/offers      live offers covering a product
"""

from bazaar.api._schemas import (
    CartItemIn,
    AddressIn,
    RecipientIn,
    ErrorOut,
    AppliedOfferOut,
    BillingOut,
    ClientTotalsIn,
    StoreGroupIn,
    CheckoutIn,
    GroupOut,
    CheckoutOut,
    BillingPreviewIn,
    ValidateItemIn,
    ItemAvailabilityOut,
    CartSummaryIn,
    StoreSummaryOut,
    CartSummaryOut,
    ValidateCodeIn,
    OfferOut,
)
from bazaar.api._app import create_app, app_from_env

__all__ = (
    # App
    "create_app",
    "app_from_env",
    # Wire models
    "CartItemIn",
    "AddressIn",
    "RecipientIn",
    "ErrorOut",
    "AppliedOfferOut",
    "BillingOut",
    "ClientTotalsIn",
    "StoreGroupIn",
    "CheckoutIn",
    "GroupOut",
    "CheckoutOut",
    "BillingPreviewIn",
    "ValidateItemIn",
    "ItemAvailabilityOut",
    "CartSummaryIn",
    "StoreSummaryOut",
    "CartSummaryOut",
    "ValidateCodeIn",
    "OfferOut",
)
