"""Core data models for the giveaway backend."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class RoundState(Enum):
    """Whether the current round is accepting entries."""

    CLOSED = "closed"
    OPEN = "open"


@dataclass(frozen=True)
class ChatLine:
    """One chat message kept in a user's rolling buffer."""

    text: str
    at: int

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "at": self.at}


@dataclass(frozen=True)
class PendingWinner:
    """A drawn winner awaiting operator confirmation."""

    user: str
    round_token: str
    since: int

    def to_dict(self) -> Dict[str, Any]:
        # Dashboard clients know the token as "gid"
        return {"user": self.user, "gid": self.round_token, "since": self.since}


@dataclass(frozen=True)
class HistoryEntry:
    """Confirmed winner record, kept newest first."""

    winner: str
    round_token: str
    at: int

    def to_dict(self) -> Dict[str, Any]:
        return {"winner": self.winner, "gid": self.round_token, "at": self.at}


@dataclass(frozen=True)
class BumpResult:
    """Outcome of a session ledger bump."""

    total: float
    deduped: bool = False


@dataclass(frozen=True)
class RollResult:
    """Outcome of roll/reroll; winner is None when nobody entered."""

    winner: Optional[PendingWinner]
    entrant_count: int


@dataclass(frozen=True)
class LedgerRecord:
    """Payload submitted to the external ledger for a confirmed win."""

    channel: str
    winner: str
    amount: float
    winner_msgs: str
    mod: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "channel": self.channel,
            "winner": self.winner,
            "amount": self.amount,
            "winner_msgs": self.winner_msgs,
            "mod": self.mod,
        }


@dataclass(frozen=True)
class GiveawaySnapshot:
    """Point-in-time view of the giveaway for the dashboard."""

    state: RoundState
    keyword: str
    entrants: List[str]
    max_entrants: int
    pending_winner: Optional[PendingWinner]
    history: List[HistoryEntry]
    session_total: float

    @property
    def is_open(self) -> bool:
        return self.state is RoundState.OPEN

    @property
    def max_reached(self) -> bool:
        return len(self.entrants) >= self.max_entrants


@dataclass(frozen=True)
class ConfirmResult:
    """Outcome of confirm as reported back to the operator."""

    winner: str
    amount: float
    round_token: str
    session_total: float
    deduped: bool
    messages: List[ChatLine] = field(default_factory=list)
