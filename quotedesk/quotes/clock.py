"""Injectable clock.

Every component that needs "now" receives a ``Clock`` so tests can freeze
time with a plain lambda.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def fixed_clock(moment: datetime) -> Clock:
    """Clock that always returns ``moment``."""
    return lambda: moment
