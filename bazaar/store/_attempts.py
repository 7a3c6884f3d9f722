"""
Attempt store — claims that block identical checkouts inside a window.

All methods return Result for explicit error handling; storage failures
come back as Error(StoreError), never as exceptions.

    store = AttemptStore(session_factory)

    match await store.claim(AttemptClaim(key, customer_id, store_id, fp, expires_at)):
        case Ok(True):
            ...  # we own the checkout
        case Ok(False):
            ...  # someone else claimed it first
        case Error(err):
            ...

Lifecycle:
    PENDING → COMPLETED (order committed, order_id recorded)
            → FAILED (released; may be reclaimed)
            → PENDING again (reclaimed once released or expired)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, cast

from kungfu import Error, Ok, Result
from sqlalchemy import or_, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bazaar.clock import utcnow
from bazaar.domain import OrderStatus
from bazaar.store._db import SessionFactory, insert_if_absent
from bazaar.store._tables import CheckoutAttemptTable, OrderTable


# ═══════════════════════════════════════════════════════════════════════════════
# Types
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class StoreError:
    """Storage operation error."""

    message: str
    cause: Exception | None = None


class AttemptState(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class AttemptClaim:
    """What gets inserted when a checkout claims its fingerprint."""

    key: str
    customer_id: str
    store_id: str
    fingerprint: str
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class CheckoutAttempt:
    """
    A stored attempt, joined with the status of the order it produced.

    order_status is None until the attempt completes.
    """

    key: str
    state: AttemptState
    fingerprint: str
    expires_at: datetime
    order_id: str | None = None
    order_status: OrderStatus | None = None
    error: str | None = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    @property
    def released(self) -> bool:
        """Failed, or its order was canceled or failed afterwards."""
        if self.state is AttemptState.FAILED:
            return True
        return self.order_status is not None and self.order_status.releases_checkout


# ═══════════════════════════════════════════════════════════════════════════════
# SQLAlchemy store
# ═══════════════════════════════════════════════════════════════════════════════


class AttemptStore:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def get(self, key: str) -> Result[CheckoutAttempt | None, StoreError]:
        """Attempt by key, expired or not. Ok(None) if absent."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(CheckoutAttemptTable, OrderTable.status)
                    .outerjoin(OrderTable, OrderTable.id == CheckoutAttemptTable.order_id)
                    .where(CheckoutAttemptTable.attempt_key == key)
                )
                row = result.one_or_none()
                if row is None:
                    return Ok(None)
                attempt, order_status = row
                return Ok(self._to_attempt(attempt, order_status))

        except SQLAlchemyError as e:
            return Error(StoreError(f"Failed to get attempt: {e}", e))

    async def claim(self, claim: AttemptClaim) -> Result[bool, StoreError]:
        """
        Insert a PENDING attempt atomically.

        Returns Ok(True) if inserted, Ok(False) if the key already exists.
        """
        try:
            async with self._session_factory() as session:
                stmt = insert_if_absent(
                    session,
                    CheckoutAttemptTable,
                    {
                        "id": uuid.uuid4().hex,
                        "attempt_key": claim.key,
                        "attempt_status": AttemptState.PENDING.value,
                        "attempt_expires_at": claim.expires_at,
                        "customer_id": claim.customer_id,
                        "store_id": claim.store_id,
                        "fingerprint": claim.fingerprint,
                        "created_at": utcnow(),
                    },
                    "attempt_key",
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                return Ok(cursor.rowcount > 0)

        except SQLAlchemyError as e:
            return Error(StoreError(f"Failed to claim attempt: {e}", e))

    async def complete(
        self,
        session: AsyncSession,
        key: str,
        order_id: str,
    ) -> Result[None, StoreError]:
        """
        Record the order inside the caller's transaction.

        Note: commits (or rolls back) together with the order itself.
        """
        try:
            cursor = cast(
                CursorResult[Any],
                await session.execute(
                    update(CheckoutAttemptTable)
                    .where(CheckoutAttemptTable.attempt_key == key)
                    .values(
                        attempt_status=AttemptState.COMPLETED.value,
                        order_id=order_id,
                    )
                    .execution_options(synchronize_session=False)
                ),
            )
            if cursor.rowcount == 0:
                return Error(StoreError(f"Attempt not found: {key}"))
            return Ok(None)

        except SQLAlchemyError as e:
            return Error(StoreError(f"Failed to complete attempt: {e}", e))

    async def release(self, key: str, error: str) -> Result[None, StoreError]:
        """Mark FAILED so an identical checkout may run again."""
        try:
            async with self._session_factory() as session:
                await session.execute(
                    update(CheckoutAttemptTable)
                    .where(CheckoutAttemptTable.attempt_key == key)
                    .values(attempt_status=AttemptState.FAILED.value, attempt_error=error)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
                return Ok(None)

        except SQLAlchemyError as e:
            return Error(StoreError(f"Failed to release attempt: {e}", e))

    async def reclaim(self, claim: AttemptClaim, now: datetime) -> Result[bool, StoreError]:
        """
        Take over a released or expired attempt in one conditional UPDATE.

        Returns Ok(True) if this caller now owns the key, Ok(False) if the
        attempt is still live, e.g. a concurrent retry reclaimed it first.
        """
        releasing = [s.value for s in OrderStatus if s.releases_checkout]
        undone = select(OrderTable.id).where(OrderTable.status.in_(releasing))
        try:
            async with self._session_factory() as session:
                cursor = cast(
                    CursorResult[Any],
                    await session.execute(
                        update(CheckoutAttemptTable)
                        .where(
                            CheckoutAttemptTable.attempt_key == claim.key,
                            or_(
                                CheckoutAttemptTable.attempt_status == AttemptState.FAILED.value,
                                CheckoutAttemptTable.attempt_expires_at <= now,
                                CheckoutAttemptTable.order_id.in_(undone),
                            ),
                        )
                        .values(
                            attempt_status=AttemptState.PENDING.value,
                            attempt_expires_at=claim.expires_at,
                            attempt_error=None,
                            order_id=None,
                            customer_id=claim.customer_id,
                            store_id=claim.store_id,
                            fingerprint=claim.fingerprint,
                            created_at=utcnow(),
                        )
                        .execution_options(synchronize_session=False)
                    ),
                )
                await session.commit()
                return Ok(cursor.rowcount > 0)

        except SQLAlchemyError as e:
            return Error(StoreError(f"Failed to reclaim attempt: {e}", e))

    @staticmethod
    def _to_attempt(row: CheckoutAttemptTable, order_status: str | None) -> CheckoutAttempt:
        return CheckoutAttempt(
            key=row.attempt_key,
            state=AttemptState(row.attempt_status),
            fingerprint=row.fingerprint,
            expires_at=row.attempt_expires_at,
            order_id=row.order_id,
            order_status=OrderStatus(order_status) if order_status is not None else None,
            error=row.attempt_error,
        )


__all__ = (
    "StoreError",
    "AttemptState",
    "AttemptClaim",
    "CheckoutAttempt",
    "AttemptStore",
)
