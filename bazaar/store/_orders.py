"""
Orders — order rows, their items and the status history.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bazaar.clock import utcnow
from bazaar.domain import NewOrder, OrderStatus
from bazaar.store._codec import address_to_json, applied_offer_to_json, recipient_to_json
from bazaar.store._tables import OrderItemTable, OrderStatusHistoryTable, OrderTable


class Orders:
    """Bound to one AsyncSession; the caller owns the transaction."""

    def __init__(self, session: AsyncSession, *, currency: str = "INR") -> None:
        self.session = session
        self.currency = currency

    async def insert(self, order: NewOrder, *, now: datetime | None = None) -> None:
        """Order (ORDER_CREATED), its items and the first history row."""
        now = now or utcnow()
        billing = order.billing

        self.session.add(
            OrderTable(
                id=order.order_id,
                customer_id=order.customer_id,
                store_id=order.store_id,
                status=OrderStatus.ORDER_CREATED.value,
                fingerprint=order.fingerprint,
                subtotal=billing.subtotal,
                shipping=billing.shipping,
                discount=billing.discount,
                gst=billing.gst,
                total=billing.total,
                currency=self.currency,
                applied_offers=[applied_offer_to_json(a) for a in billing.applied_offers],
                delivery_address=address_to_json(order.address),
                recipient=recipient_to_json(order.recipient),
                payment_intent_id=None,
                created_at=now,
                updated_at=now,
            )
        )
        self.session.add_all(
            OrderItemTable(
                order_id=order.order_id,
                product_id=line.product_id,
                quantity=line.quantity,
                price=line.price,
            )
            for line in order.lines
        )
        self.session.add(self._history(order.order_id, OrderStatus.ORDER_CREATED, now))
        await self.session.flush()

    async def set_payment_intent(self, order_id: str, intent_id: str) -> None:
        await self.session.execute(
            update(OrderTable)
            .where(OrderTable.id == order_id)
            .values(payment_intent_id=intent_id, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    async def status(self, order_id: str) -> OrderStatus | None:
        value = await self.session.scalar(
            select(OrderTable.status).where(OrderTable.id == order_id)
        )
        return OrderStatus(value) if value is not None else None

    async def append_status(
        self,
        order_id: str,
        status: OrderStatus,
        *,
        now: datetime | None = None,
    ) -> None:
        """Move the order to `status` and record the transition."""
        now = now or utcnow()
        await self.session.execute(
            update(OrderTable)
            .where(OrderTable.id == order_id)
            .values(status=status.value, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        self.session.add(self._history(order_id, status, now))
        await self.session.flush()

    async def lines(self, order_id: str) -> list[tuple[str, int]]:
        """(product_id, quantity) of every item, for stock release."""
        result = await self.session.execute(
            select(OrderItemTable.product_id, OrderItemTable.quantity)
            .where(OrderItemTable.order_id == order_id)
            .order_by(OrderItemTable.product_id)
        )
        return [(product_id, quantity) for product_id, quantity in result]

    @staticmethod
    def _history(order_id: str, status: OrderStatus, now: datetime) -> OrderStatusHistoryTable:
        return OrderStatusHistoryTable(
            id=uuid.uuid4().hex,
            order_id=order_id,
            status=status.value,
            created_at=now,
        )


__all__ = ("Orders",)
