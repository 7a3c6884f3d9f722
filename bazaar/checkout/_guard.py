"""
Duplicate guard — claim a checkout fingerprint or explain why not.

State nodes validate, the polymorphic verdict routes:

    GuardSpec (injected)
         │
         ▼
    FetchAttemptNode
         │
         ├── StoreFailureNode ────┐
         ├── LiveAttemptNode ─────┤
         ├── ReleasedAttemptNode ─┼── GuardVerdict (@polymorphic)
         └── VacantNode ──────────┘          │
                                             ▼
                                      GuardResultNode

Note: no 'from __future__ import annotations' here; nodnod reads the
type hints at runtime to wire dependencies.
"""

from dataclasses import dataclass
from datetime import datetime

from kungfu import Error, Ok, Result

from bazaar import graph as G
from bazaar.errors import CheckoutError, ConflictError, PersistenceError
from bazaar.log import get_logger
from bazaar.store import AttemptClaim, AttemptStore, CheckoutAttempt, StoreError


logger = get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Input — Spec (injected)
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class GuardSpec:
    claim: AttemptClaim
    attempts: AttemptStore
    now: datetime

    @property
    def key(self) -> str:
        return self.claim.key


# ═══════════════════════════════════════════════════════════════════════════════
# Fetch
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class FetchAttemptNode:
    def __init__(
        self,
        attempt: CheckoutAttempt | None,
        spec: GuardSpec,
        store_error: StoreError | None = None,
    ) -> None:
        self.attempt = attempt
        self.spec = spec
        self.store_error = store_error

    @classmethod
    async def __compose__(cls, spec: GuardSpec) -> "FetchAttemptNode":
        match await spec.attempts.get(spec.key):
            case Ok(attempt):
                return cls(attempt, spec)
            case Error(err):
                return cls(None, spec, store_error=err)


# ═══════════════════════════════════════════════════════════════════════════════
# State nodes
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class StoreFailureNode:
    def __init__(self, error: StoreError, spec: GuardSpec) -> None:
        self.error = error
        self.spec = spec

    @classmethod
    def __compose__(cls, fetch: FetchAttemptNode) -> "StoreFailureNode":
        if fetch.store_error is None:
            raise G.NodeError("No store error")
        return cls(fetch.store_error, fetch.spec)


@G.node
class LiveAttemptNode:
    """Validates: attempt inside its window, order not canceled or failed."""

    def __init__(self, attempt: CheckoutAttempt, spec: GuardSpec) -> None:
        self.attempt = attempt
        self.spec = spec

    @classmethod
    def __compose__(cls, fetch: FetchAttemptNode) -> "LiveAttemptNode":
        attempt = fetch.attempt
        if attempt is None:
            raise G.NodeError("No attempt")
        if attempt.is_expired(fetch.spec.now):
            raise G.NodeError("Expired")
        if attempt.released:
            raise G.NodeError("Released")
        return cls(attempt, fetch.spec)


@G.node
class ReleasedAttemptNode:
    """Validates: attempt inside its window but failed or its order undone."""

    def __init__(self, attempt: CheckoutAttempt, spec: GuardSpec) -> None:
        self.attempt = attempt
        self.spec = spec

    @classmethod
    def __compose__(cls, fetch: FetchAttemptNode) -> "ReleasedAttemptNode":
        attempt = fetch.attempt
        if attempt is None:
            raise G.NodeError("No attempt")
        if attempt.is_expired(fetch.spec.now):
            raise G.NodeError("Expired")
        if not attempt.released:
            raise G.NodeError("Still live")
        return cls(attempt, fetch.spec)


@G.node
class VacantNode:
    """Validates: no attempt, or only an expired one."""

    def __init__(self, expired: CheckoutAttempt | None, spec: GuardSpec) -> None:
        self.expired = expired
        self.spec = spec

    @classmethod
    def __compose__(cls, fetch: FetchAttemptNode) -> "VacantNode":
        if fetch.store_error is not None:
            raise G.NodeError("Store error")
        attempt = fetch.attempt
        if attempt is not None and not attempt.is_expired(fetch.spec.now):
            raise G.NodeError("Attempt exists")
        return cls(attempt, fetch.spec)


# ═══════════════════════════════════════════════════════════════════════════════
# Verdict
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Claimed:
    key: str


@dataclass(frozen=True)
class Denied:
    error: CheckoutError


type Verdict = Claimed | Denied


def _store_failure(error: StoreError) -> Denied:
    return Denied(PersistenceError(error.message))


async def _duplicate(spec: GuardSpec) -> Denied:
    """Lost the race: name whichever order now holds the key."""
    prior_order_id: str | None = None
    match await spec.attempts.get(spec.key):
        case Ok(attempt) if attempt is not None:
            prior_order_id = attempt.order_id
        case _:
            pass
    return Denied(ConflictError.duplicate(spec.claim.fingerprint, prior_order_id))


async def _claim(spec: GuardSpec) -> Verdict:
    """Insert-if-absent; losing the race is a duplicate."""
    match await spec.attempts.claim(spec.claim):
        case Error(err):
            return _store_failure(err)
        case Ok(True):
            return Claimed(spec.key)
        case Ok(_):
            return await _duplicate(spec)


async def _reclaim(spec: GuardSpec) -> Verdict:
    """Conditional takeover; only one concurrent retry gets the row."""
    match await spec.attempts.reclaim(spec.claim, spec.now):
        case Error(err):
            return _store_failure(err)
        case Ok(True):
            return Claimed(spec.key)
        case Ok(_):
            return await _duplicate(spec)


@G.polymorphic[Verdict]
class GuardVerdict:
    """Cases are tried in order; the first whose state node resolved wins."""

    @G.case
    def store_failure(cls, node: StoreFailureNode) -> Verdict:
        return _store_failure(node.error)

    @G.case
    def duplicate(cls, node: LiveAttemptNode) -> Verdict:
        return Denied(
            ConflictError.duplicate(node.attempt.fingerprint, node.attempt.order_id)
        )

    @G.case
    async def reclaim(cls, node: ReleasedAttemptNode) -> Verdict:
        """A failed or undone checkout may run again."""
        return await _reclaim(node.spec)

    @G.case
    async def claim(cls, node: VacantNode) -> Verdict:
        if node.expired is not None:
            return await _reclaim(node.spec)
        return await _claim(node.spec)


# ═══════════════════════════════════════════════════════════════════════════════
# Final node
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class GuardResultNode:
    def __init__(self, verdict: Verdict) -> None:
        self.verdict = verdict

    @classmethod
    def __compose__(cls, verdict: GuardVerdict) -> "GuardResultNode":
        return cls(verdict.value)

    def to_result(self) -> Result[str, CheckoutError]:
        match self.verdict:
            case Claimed(key=key):
                return Ok(key)
            case Denied(error=error):
                return Error(error)


# ═══════════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════════


async def guard(spec: GuardSpec) -> Result[str, CheckoutError]:
    """
    Claim `spec.claim.key` for this checkout.

    Ok(key) when the caller owns the checkout; Error(ConflictError) for a
    live duplicate; Error(PersistenceError) when the store fails.
    """
    node = await G.run(GuardResultNode).inject(spec)
    result = node.to_result()
    if isinstance(result, Error):
        logger.info(
            "checkout_guard_denied",
            key=spec.key,
            code=result.error.code,
        )
    return result


__all__ = (
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
)
