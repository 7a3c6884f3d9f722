"""
FastAPI surface over the engine.

    app = create_app(session_factory, gateway, policy=CheckoutPolicy())

Handlers stay thin: in-model → domain call → out-model. Every
CheckoutError becomes `{code, message, details?}` with its http_status.
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import AbstractAsyncContextManager, asynccontextmanager, nullcontext

import httpx
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from kungfu import Error, Ok
from sqlalchemy.ext.asyncio import async_sessionmaker

from bazaar.api._schemas import (
    BillingOut,
    BillingPreviewIn,
    CartSummaryIn,
    CartSummaryOut,
    CheckoutIn,
    CheckoutOut,
    ItemAvailabilityOut,
    OfferOut,
    ValidateCodeIn,
    ValidateItemIn,
)
from bazaar.cart import summarize_cart, validate_cart_item
from bazaar.checkout import Checkout, Notifier, WebhookNotifier
from bazaar.clock import Clock, utcnow
from bazaar.config import CheckoutPolicy, GatewaySettings
from bazaar.errors import CheckoutError
from bazaar.gateway import Gateway, HttpGateway
from bazaar.log import configure_logging, get_logger
from bazaar.pricing import BillingContext, BillingNode, applicable_offers, validate_offer_code
from bazaar.store import SessionFactory, SqlCatalog, create_schema, open_engine


logger = get_logger(__name__)

type Lifespan = Callable[[FastAPI], AbstractAsyncContextManager[None]]


async def _checkout_error(request: Request, exc: CheckoutError) -> JSONResponse:
    return JSONResponse(exc.to_payload(), status_code=exc.http_status)


async def _request_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        {
            "code": "validation_error",
            "message": "Request body is invalid",
            "details": {"errors": jsonable_encoder(exc.errors())},
        },
        status_code=422,
    )


def create_app(
    session_factory: SessionFactory,
    gateway: Gateway,
    *,
    policy: CheckoutPolicy | None = None,
    notifier: Notifier | None = None,
    clock: Clock = utcnow,
    resources: Lifespan | None = None,
) -> FastAPI:
    """
    `resources` is entered for the app's whole life (schema, shared
    clients); pending notifications drain before it exits.
    """
    policy = policy or CheckoutPolicy()
    checkout = Checkout(session_factory, gateway, policy=policy, notifier=notifier, clock=clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with resources(app) if resources else nullcontext():
            yield
            await checkout.drain()

    app = FastAPI(title="bazaar", lifespan=lifespan)
    app.state.checkout = checkout
    app.state.policy = policy
    app.exception_handler(CheckoutError)(_checkout_error)
    app.exception_handler(RequestValidationError)(_request_error)

    @app.post("/checkout")
    async def post_checkout(body: CheckoutIn) -> JSONResponse:
        match await checkout.run(body.to_domain()):
            case Ok(outcome):
                out = CheckoutOut.from_domain(outcome)
                status = 200
                if not outcome.receipts:
                    # nothing went through: the first failure sets the status
                    status = next(iter(outcome.failures.values())).http_status
                return JSONResponse(out.model_dump(mode="json"), status_code=status)
            case Error(err):
                raise err

    @app.post("/billing/preview")
    async def billing_preview(body: BillingPreviewIn) -> BillingOut:
        async with session_factory() as session:
            context = BillingContext(
                request=body.to_domain(),
                catalog=SqlCatalog(session),
                policy=policy,
                now=clock(),
            )
            match await BillingNode.execute(context):
                case Ok(billing):
                    return BillingOut.from_domain(billing)
                case Error(err):
                    raise err

    @app.post("/cart/validate-item")
    async def validate_item(body: ValidateItemIn) -> ItemAvailabilityOut:
        async with session_factory() as session:
            item = await validate_cart_item(SqlCatalog(session), body.product_id, body.quantity)
        return ItemAvailabilityOut.from_domain(item)

    @app.post("/cart/summary")
    async def cart_summary(body: CartSummaryIn) -> CartSummaryOut:
        async with session_factory() as session:
            summary = await summarize_cart(
                SqlCatalog(session),
                [i.to_domain() for i in body.items],
                body.address.to_domain(),
                offer_codes=body.offer_codes,
                policy=policy,
                now=clock(),
            )
        return CartSummaryOut.from_domain(summary)

    @app.post("/offers/validate-code")
    async def validate_code(body: ValidateCodeIn) -> OfferOut:
        async with session_factory() as session:
            offer = await validate_offer_code(SqlCatalog(session), body.store_id, body.code, clock())
        return OfferOut.from_domain(offer)

    @app.get("/products/{product_id}/offers")
    async def product_offers(product_id: str) -> list[OfferOut]:
        async with session_factory() as session:
            offers = await applicable_offers(SqlCatalog(session), product_id, clock())
        return [OfferOut.from_domain(o) for o in offers]

    return app


def app_from_env(env: Mapping[str, str] | None = None) -> FastAPI:
    """
    Process entry point: database, gateway and notifier from BAZAAR_* env.

        uvicorn --factory bazaar.api:app_from_env

    BAZAAR_DATABASE_URL (default sqlite+aiosqlite:///bazaar.db),
    BAZAAR_WEBHOOK_URL, BAZAAR_LOG_LEVEL, plus the CheckoutPolicy and
    GatewaySettings variables.
    """
    env = os.environ if env is None else env
    configure_logging(env.get("BAZAAR_LOG_LEVEL", "INFO"))
    policy = CheckoutPolicy.from_env(env)
    settings = GatewaySettings.from_env(env)
    webhook = env.get("BAZAAR_WEBHOOK_URL")

    if not settings.configured:
        logger.warning("gateway_credentials_missing", base_url=settings.base_url)

    engine = open_engine(env.get("BAZAAR_DATABASE_URL", "sqlite+aiosqlite:///bazaar.db"))
    client = httpx.AsyncClient(timeout=settings.timeout)

    @asynccontextmanager
    async def resources(app: FastAPI) -> AsyncIterator[None]:
        await create_schema(engine)
        logger.info("bazaar_started", database=engine.url.render_as_string(hide_password=True))
        async with client:
            yield
        await engine.dispose()

    return create_app(
        async_sessionmaker(engine, expire_on_commit=False),
        HttpGateway(settings, client=client),
        policy=policy,
        notifier=WebhookNotifier(webhook, client=client) if webhook else None,
        resources=resources,
    )


__all__ = ("create_app", "app_from_env")
