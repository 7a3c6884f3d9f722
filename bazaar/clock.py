"""
Clock — naive UTC timestamps, the form stored in the database.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

type Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


__all__ = ("Clock", "utcnow")
