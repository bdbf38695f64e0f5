"""Human-readable quote numbers: ``QT-YYYYMMDD-RRR``.

The date part is the UTC creation date, RRR a zero-padded random number in
0–999. Numbers are not guaranteed unique; the ``quotes.quote_number`` unique
constraint catches collisions and the repository regenerates a bounded
number of times.
"""

from __future__ import annotations

import random
import re
from datetime import UTC, datetime

QUOTE_NUMBER_PATTERN = re.compile(r"^[A-Z]+-\d{8}-\d{3}$")

_rng = random.SystemRandom()


def generate_quote_number(
    now: datetime,
    prefix: str = "QT",
    rng: random.Random | None = None,
) -> str:
    """Build a quote number for ``now``.

    Args:
        now: Creation time; converted to UTC before formatting.
        prefix: Leading letters of the number.
        rng: Random source (defaults to a SystemRandom instance).

    Returns:
        A string like ``QT-20261018-042``.
    """
    source = rng or _rng
    day = now.astimezone(UTC) if now.tzinfo else now
    return f"{prefix}-{day:%Y%m%d}-{source.randint(0, 999):03d}"
