"""Ledger webhook client for confirmed giveaway wins."""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Dict, List, Optional, Sequence

import requests

from giveaway_dashboard.giveaway.errors import LedgerFailure
from giveaway_dashboard.giveaway.models import LedgerRecord
from giveaway_dashboard.utils.config import get_backoff, get_config_value
from giveaway_dashboard.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_BACKOFF = (0.5, 1.0, 2.0)


class SheetLedgerClient:
    """Async-friendly wrapper that POSTs win records to a spreadsheet webhook.

    Each submit makes one attempt per backoff delay, sleeping that delay after
    every failed attempt, and raises LedgerFailure once all attempts fail.
    """

    def __init__(
        self,
        webhook_url: str,
        *,
        key: str = "",
        backoff: Sequence[float] = DEFAULT_BACKOFF,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not webhook_url:
            raise ValueError("webhook_url is required")
        self.webhook_url = webhook_url
        self._key = key
        self._backoff: List[float] = list(backoff)
        self._timeout = timeout
        self._session = session or requests.Session()
        # requests.Session is not thread-safe; to_thread workers share this one
        self._session_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "SheetLedgerClient":
        return cls(
            get_config_value(config, "ledger.webhook", ""),
            key=get_config_value(config, "ledger.key", "") or "",
            backoff=get_backoff(config, "ledger.backoff", list(DEFAULT_BACKOFF)),
            timeout=float(get_config_value(config, "ledger.timeout", 10.0)),
        )

    async def submit(self, record: LedgerRecord) -> Dict[str, Any]:
        """Record a confirmed win; returns the webhook's JSON reply."""
        payload = record.to_payload()
        for attempt, delay in enumerate(self._backoff, start=1):
            try:
                reply = await asyncio.to_thread(self._post, payload)
                if reply is not None:
                    logger.info("Ledger recorded win for %s (attempt %d)", record.winner, attempt)
                    return reply
            except requests.RequestException as exc:
                logger.error("Webhook error: %s", exc)
            await asyncio.sleep(delay)
        raise LedgerFailure(f"Failed to log win for {record.winner} after {len(self._backoff)} attempts")

    def _post(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        params = {"key": self._key} if self._key else None
        with self._session_lock:
            response = self._session.post(self.webhook_url, params=params, json=payload, timeout=self._timeout)
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if response.ok and body.get("ok") is not False:
            return body
        logger.error("Webhook non-OK %s %s", response.status_code, response.text[:200])
        return None

    async def close(self) -> None:
        self._session.close()
