"""
HTTP gateway — payment intents over httpx.

    async with httpx.AsyncClient() as client:
        gateway = HttpGateway(GatewaySettings.from_env(), client=client)
        intent = await gateway.create_payment_intent(request)

Transport failures, 429 and 5xx answers are retried with a fixed delay;
every attempt carries the same Idempotency-Key, so a retried create
never produces a second intent.
"""

from __future__ import annotations

from typing import Any

import httpx
from combinators import RetryPolicy, retry
from combinators import lift as L
from kungfu import Error, LazyCoroResult, Ok

from bazaar.config import GatewaySettings
from bazaar.errors import UpstreamError
from bazaar.gateway._types import PaymentIntent, PaymentIntentRequest
from bazaar.log import get_logger


logger = get_logger(__name__)


def _retryable(error: UpstreamError) -> bool:
    return error.retryable


def _to_upstream(exc: Exception) -> UpstreamError:
    match exc:
        case UpstreamError():
            return exc
        case httpx.TransportError():
            return UpstreamError(
                f"Payment gateway unreachable: {type(exc).__name__}",
                retryable=True,
            )
        case _:
            return UpstreamError(f"Payment gateway call failed: {exc}")


class HttpGateway:
    def __init__(
        self,
        settings: GatewaySettings,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self._client = client
        self._policy: RetryPolicy[UpstreamError] = RetryPolicy.fixed(
            times=settings.retries + 1,
            delay_seconds=settings.retry_delay,
            retry_on=_retryable,
        )

    async def create_payment_intent(self, request: PaymentIntentRequest) -> PaymentIntent:
        """Raises UpstreamError once retries are exhausted."""
        result = await retry(self._attempt(request), policy=self._policy)
        match result:
            case Ok(intent):
                logger.info(
                    "payment_intent_created",
                    intent_id=intent.intent_id,
                    receipt=request.receipt,
                    amount=request.amount,
                    transfers=len(request.transfers),
                )
                return intent
            case Error(err):
                logger.warning(
                    "payment_intent_failed",
                    receipt=request.receipt,
                    code=err.code,
                    message=err.message,
                    retryable=err.retryable,
                )
                raise err

    def _attempt(self, request: PaymentIntentRequest) -> LazyCoroResult[PaymentIntent, UpstreamError]:
        return L.catching_async(lambda: self._post(request), on_error=_to_upstream)

    async def _post(self, request: PaymentIntentRequest) -> PaymentIntent:
        settings = self.settings
        headers = {"Idempotency-Key": request.receipt}
        auth = httpx.BasicAuth(settings.key_id, settings.key_secret)
        url = f"{settings.base_url.rstrip('/')}/orders"

        if self._client is not None:
            response = await self._client.post(
                url,
                json=_payload(request),
                headers=headers,
                auth=auth,
                timeout=settings.timeout,
            )
        else:
            async with httpx.AsyncClient(timeout=settings.timeout) as client:
                response = await client.post(url, json=_payload(request), headers=headers, auth=auth)

        return _parse(response, request)


# ═══════════════════════════════════════════════════════════════════════════════
# Wire format
# ═══════════════════════════════════════════════════════════════════════════════


def _payload(request: PaymentIntentRequest) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "amount": request.amount,
        "currency": request.currency,
        "receipt": request.receipt,
    }
    if request.transfers:
        payload["transfers"] = [
            {"account": t.account, "amount": t.amount, "currency": t.currency}
            for t in request.transfers
        ]
    if request.notes:
        payload["notes"] = dict(request.notes)
    return payload


def _parse(response: httpx.Response, request: PaymentIntentRequest) -> PaymentIntent:
    status = response.status_code
    if status == 429 or status >= 500:
        raise UpstreamError(
            f"Payment gateway answered {status}",
            retryable=True,
            details={"status": status},
        )
    if not response.is_success:
        raise UpstreamError(
            f"Payment gateway rejected the intent ({status})",
            details={"status": status},
        )

    try:
        body = response.json()
    except ValueError as e:
        raise UpstreamError("Payment gateway returned invalid JSON") from e

    if not isinstance(body, dict) or not body.get("id"):
        raise UpstreamError("Payment gateway response has no intent id")

    return PaymentIntent(
        intent_id=str(body["id"]),
        status=str(body.get("status", "created")),
        amount=int(body.get("amount", request.amount)),
        currency=str(body.get("currency", request.currency)),
    )


__all__ = ("HttpGateway",)
