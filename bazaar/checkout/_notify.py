"""
Notifications — one-way sink told about committed orders.

Delivery is fire-and-forget: failures are logged, never raised, and a
slow sink never delays the checkout response.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import httpx

from bazaar.checkout._types import CheckoutReceipt
from bazaar.log import get_logger


logger = get_logger(__name__)


class Notifier(Protocol):
    async def order_created(self, receipt: CheckoutReceipt) -> None: ...


class LoggingNotifier:
    async def order_created(self, receipt: CheckoutReceipt) -> None:
        logger.info("order_notification", order_id=receipt.order_id, store_id=receipt.store_id)


class WebhookNotifier:
    """POSTs `{event, order_id, store_id, total}` to a webhook url."""

    def __init__(self, url: str, *, client: httpx.AsyncClient | None = None, timeout: float = 5.0) -> None:
        self.url = url
        self._client = client
        self._timeout = timeout

    async def order_created(self, receipt: CheckoutReceipt) -> None:
        payload = {
            "event": "order.created",
            "order_id": receipt.order_id,
            "store_id": receipt.store_id,
            "total": str(receipt.billing.total),
            "currency": receipt.currency,
        }
        if self._client is not None:
            response = await self._client.post(self.url, json=payload, timeout=self._timeout)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self.url, json=payload)
        response.raise_for_status()


class Dispatcher:
    """
    Runs notifier calls as background tasks.

    Example:
        dispatcher = Dispatcher(WebhookNotifier(url))
        dispatcher.order_created(receipt)
        await dispatcher.drain()   # on shutdown / in tests
    """

    def __init__(self, notifier: Notifier | None = None) -> None:
        self.notifier = notifier or LoggingNotifier()
        self._tasks: set[asyncio.Task[None]] = set()

    def order_created(self, receipt: CheckoutReceipt) -> None:
        task = asyncio.create_task(self._deliver(receipt))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*self._tasks)

    async def _deliver(self, receipt: CheckoutReceipt) -> None:
        try:
            await self.notifier.order_created(receipt)
        except Exception as e:
            logger.warning(
                "order_notification_failed",
                order_id=receipt.order_id,
                error=str(e),
                error_type=type(e).__name__,
            )


__all__ = ("Notifier", "LoggingNotifier", "WebhookNotifier", "Dispatcher")
