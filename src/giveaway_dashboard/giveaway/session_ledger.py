"""Session-only payout total with idempotent bumps."""

from __future__ import annotations

from typing import Any, Optional, Set

from giveaway_dashboard.giveaway.models import BumpResult
from giveaway_dashboard.utils.common import coerce_amount
from giveaway_dashboard.utils.logger import get_logger

logger = get_logger(__name__)


class SessionLedger:
    """Process-lifetime accumulator of confirmed winnings.

    A bump carrying a dedupe token is applied at most once per token, so a
    retried confirm never pays twice. Bumps without a token always apply.
    """

    def __init__(self) -> None:
        self._total = 0.0
        self._seen: Set[str] = set()

    @property
    def total(self) -> float:
        return self._total

    def has_seen(self, dedupe_token: str) -> bool:
        return str(dedupe_token) in self._seen

    def bump(self, amount: Any, dedupe_token: Optional[str] = None) -> BumpResult:
        """Add ``amount`` to the total unless ``dedupe_token`` was already applied.

        Raises InvalidAmount when ``amount`` is not a finite number; the total
        and the seen tokens are left untouched in that case.
        """
        value = coerce_amount(amount)
        if dedupe_token:
            token = str(dedupe_token)
            if self.has_seen(token):
                logger.info("Session total dedupe hit for %s", token)
                return BumpResult(total=self._total, deduped=True)
            self._seen.add(token)
        self._total += value
        return BumpResult(total=self._total)
