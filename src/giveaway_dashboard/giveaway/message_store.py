"""Rolling per-user chat buffer used to annotate winners."""

from __future__ import annotations

from collections import deque
from typing import Callable, Deque, Dict, List, Optional

from giveaway_dashboard.giveaway.models import ChatLine
from giveaway_dashboard.utils.common import now_ms


class MessageRingStore:
    """Bounded, time-windowed buffer of recent chat lines per identity.

    Each identity keeps at most ``max_per_user`` lines, none older than
    ``keep_window_ms``. Round transitions never touch this store, so a winner's
    lines are still available when confirmation lags the roll.
    """

    def __init__(
        self,
        *,
        max_per_user: int = 50,
        keep_window_ms: int = 5 * 60 * 1000,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        if max_per_user < 1:
            raise ValueError(f"max_per_user must be >= 1, got {max_per_user}")
        if keep_window_ms < 0:
            raise ValueError(f"keep_window_ms must be >= 0, got {keep_window_ms}")
        self.max_per_user = max_per_user
        self.keep_window_ms = keep_window_ms
        self._clock = clock
        self._lines: Dict[str, Deque[ChatLine]] = {}

    def __len__(self) -> int:
        return len(self._lines)

    def record(self, identity: str, text: str, at: Optional[int] = None) -> None:
        """Append a line, then evict from the oldest end."""
        now = self._clock()
        line = ChatLine(text=text, at=now if at is None else at)
        buf = self._lines.setdefault(identity, deque())
        buf.append(line)
        while buf and (len(buf) > self.max_per_user or now - buf[0].at > self.keep_window_ms):
            buf.popleft()
        if not buf:
            del self._lines[identity]

    def recent(
        self,
        identity: str,
        since: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[ChatLine]:
        """Return a chronological copy of an identity's lines still in the window.

        ``since`` keeps lines with ``at >= since``; ``limit`` keeps only the
        most recent ``limit`` of those.
        """
        buf = self._lines.get(identity)
        if not buf:
            return []
        now = self._clock()
        lines = [
            line
            for line in buf
            if now - line.at <= self.keep_window_ms and (since is None or line.at >= since)
        ]
        if limit is not None:
            lines = lines[-limit:] if limit > 0 else []
        return lines

    def prune(self) -> int:
        """Drop expired lines everywhere; returns how many identities were forgotten."""
        now = self._clock()
        forgotten = 0
        for identity in list(self._lines):
            buf = self._lines[identity]
            while buf and now - buf[0].at > self.keep_window_ms:
                buf.popleft()
            if not buf:
                del self._lines[identity]
                forgotten += 1
        return forgotten
