"""Common utility functions for the giveaway backend."""

import math
import time
from typing import Any

from giveaway_dashboard.giveaway.errors import InvalidAmount


def now_ms() -> int:
    """Current wall-clock time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def coerce_amount(value: Any) -> float:
    """Turn a payout amount into a finite float.

    Accepts ints, floats and numeric strings ("10", " 2.5 "). Booleans, None,
    blank or non-numeric strings, NaN and infinities raise InvalidAmount.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidAmount(value)
    if isinstance(value, (int, float)):
        amount = float(value)
    elif isinstance(value, str):
        try:
            amount = float(value.strip())
        except ValueError:
            raise InvalidAmount(value) from None
    else:
        raise InvalidAmount(value)
    if not math.isfinite(amount):
        raise InvalidAmount(value)
    return amount


def mask_secret(value: Any) -> str:
    """Render a secret for log output without revealing it."""
    return "set" if value else "missing"
