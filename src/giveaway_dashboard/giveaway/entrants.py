"""Capped, deduplicated entrant membership for the open round."""

from __future__ import annotations

from typing import Dict, List


class EntrantSet:
    """Insertion-ordered set of identities bounded by ``max_entrants``.

    Backed by a dict for O(1) membership and stable insertion order. Unlike a
    FIFO-evicting set, a full EntrantSet rejects newcomers and keeps the
    first ``max_entrants`` identities.
    """

    def __init__(self, max_entrants: int = 7500) -> None:
        if max_entrants < 1:
            raise ValueError(f"max_entrants must be >= 1, got {max_entrants}")
        self.max_entrants = max_entrants
        self._members: Dict[str, None] = {}

    def __contains__(self, identity: object) -> bool:
        return identity in self._members

    def __len__(self) -> int:
        return len(self._members)

    @property
    def is_full(self) -> bool:
        return len(self._members) >= self.max_entrants

    def reset(self) -> None:
        """Remove all entrants."""
        self._members.clear()

    def offer(self, identity: str) -> bool:
        """Admit ``identity`` unless the set is full; returns membership."""
        # Membership is checked first so a present identity is never rejected at capacity.
        if identity in self._members:
            return True
        if self.is_full:
            return False
        self._members[identity] = None
        return True

    def members(self) -> List[str]:
        """Snapshot of entrants in insertion order."""
        return list(self._members)
