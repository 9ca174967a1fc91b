"""
Giveaway state machine.

Owns the round state, entrants, rolling chat buffer, pending winner, history
and session total for one running dashboard. Chat events and operator commands
mutate it through the methods below; each call runs to completion under a
single lock and never awaits, so no two mutations interleave. Chat messages
and ledger submissions are handed to a TaskDispatcher and never block a
command or roll back a committed transition.
"""

from __future__ import annotations

import secrets
import threading
import uuid
from collections import deque
from typing import Any, Awaitable, Callable, Deque, List, Optional, Protocol

from giveaway_dashboard.giveaway.dispatcher import TaskDispatcher
from giveaway_dashboard.giveaway.entrants import EntrantSet
from giveaway_dashboard.giveaway.errors import NoWinnerToConfirm, NotOpen
from giveaway_dashboard.giveaway.message_store import MessageRingStore
from giveaway_dashboard.giveaway.models import (
    ChatLine,
    ConfirmResult,
    GiveawaySnapshot,
    HistoryEntry,
    LedgerRecord,
    PendingWinner,
    RollResult,
    RoundState,
)
from giveaway_dashboard.giveaway.session_ledger import SessionLedger
from giveaway_dashboard.utils.common import coerce_amount, now_ms
from giveaway_dashboard.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_KEYWORD = "yo"
WINNER_MSGS_LIMIT = 10


class Notifier(Protocol):
    def send(self, text: str) -> Awaitable[None]:
        ...


class LedgerClient(Protocol):
    def submit(self, record: LedgerRecord) -> Awaitable[Any]:
        ...


def new_round_token() -> str:
    return uuid.uuid4().hex


class GiveawayStateMachine:
    """Round lifecycle and command surface of the giveaway."""

    def __init__(
        self,
        *,
        notifier: Notifier,
        ledger: LedgerClient,
        dispatcher: TaskDispatcher,
        channel: str = "",
        default_mod: str = "",
        entrants: Optional[EntrantSet] = None,
        messages: Optional[MessageRingStore] = None,
        session: Optional[SessionLedger] = None,
        history_limit: int = 50,
        choose_index: Callable[[int], int] = secrets.randbelow,
        token_factory: Callable[[], str] = new_round_token,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._notifier = notifier
        self._ledger = ledger
        self._dispatcher = dispatcher
        self.channel = channel.lstrip("#")
        self.default_mod = default_mod

        self.entrants = entrants if entrants is not None else EntrantSet()
        self.messages = messages if messages is not None else MessageRingStore(clock=clock)
        self.session = session if session is not None else SessionLedger()

        self._choose_index = choose_index
        self._token_factory = token_factory
        self._clock = clock

        self._lock = threading.Lock()
        self._state = RoundState.CLOSED
        self._keyword = DEFAULT_KEYWORD
        self._pending: Optional[PendingWinner] = None
        self._history: Deque[HistoryEntry] = deque(maxlen=history_limit)

    # ------------------------------------------------------------------
    # Read surface
    # ------------------------------------------------------------------
    @property
    def state(self) -> RoundState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is RoundState.OPEN

    @property
    def keyword(self) -> str:
        return self._keyword

    @property
    def pending_winner(self) -> Optional[PendingWinner]:
        return self._pending

    @property
    def history(self) -> List[HistoryEntry]:
        with self._lock:
            return list(self._history)

    @property
    def session_total(self) -> float:
        return self.session.total

    def snapshot(self) -> GiveawaySnapshot:
        with self._lock:
            return GiveawaySnapshot(
                state=self._state,
                keyword=self._keyword,
                entrants=self.entrants.members(),
                max_entrants=self.entrants.max_entrants,
                pending_winner=self._pending,
                history=list(self._history),
                session_total=self.session.total,
            )

    def recent_messages(self, identity: str, since: Optional[int] = None, limit: Optional[int] = None) -> List[ChatLine]:
        with self._lock:
            return self.messages.recent(identity, since=since, limit=limit)

    def prune_messages(self) -> int:
        with self._lock:
            return self.messages.prune()

    # ------------------------------------------------------------------
    # Inbound chat
    # ------------------------------------------------------------------
    def handle_chat(self, identity: str, text: str, at: Optional[int] = None) -> bool:
        """Record a chat line and enter its author when it matches the keyword.

        Returns True when the author is an entrant after this message.
        """
        identity = (identity or "").strip()
        text = (text or "").strip()
        if not identity:
            return False

        with self._lock:
            self.messages.record(identity, text, at)
            if self._state is not RoundState.OPEN or text.lower() != self._keyword.lower():
                return False
            admitted = self.entrants.offer(identity)

        if not admitted:
            logger.debug("Entrant cap reached, %s not admitted", identity)
        return admitted

    # ------------------------------------------------------------------
    # Operator commands
    # ------------------------------------------------------------------
    def start(self, keyword: Optional[str] = None) -> str:
        """Open a fresh round; always succeeds."""
        keyword = str(keyword or "").strip() or DEFAULT_KEYWORD
        with self._lock:
            self._state = RoundState.OPEN
            self._keyword = keyword
            self.entrants.reset()
            self._pending = None

        logger.info('✅ Giveaway started with keyword "%s"', keyword)
        self._notify(f"Giveaway started — type {keyword} to enter! Giveaway is open until closed.")
        return keyword

    def stop(self) -> None:
        with self._lock:
            if self._state is not RoundState.OPEN:
                raise NotOpen()
            self._state = RoundState.CLOSED
            self._pending = None

        logger.info("✅ Giveaway closed")
        self._notify("Giveaway is now closed.")

    def roll(self) -> RollResult:
        """Draw a pending winner uniformly from the current entrants."""
        return self._draw(announce="Winner is @{user}! Respond in chat!", verb="roll")

    def reroll(self) -> RollResult:
        """Draw again, independently of and replacing any pending winner."""
        return self._draw(announce="New winner is @{user}!", verb="reroll")

    def cancel(self) -> bool:
        """Clear the pending winner; returns whether there was one."""
        with self._lock:
            had_pending = self._pending is not None
            self._pending = None
        logger.info("⚠️ Pending winner cancelled")
        return had_pending

    def confirm(
        self,
        winner: Optional[str] = None,
        amount: Any = 0,
        mod: Optional[str] = None,
    ) -> ConfirmResult:
        """Confirm the explicit or pending winner and pay out ``amount``.

        The session total is bumped with the pending round token, or with a
        ``manual:<winner>`` token when nobody is pending. The winner's recent
        lines and the amount go to the external ledger in the background.
        """
        value = coerce_amount(amount)
        explicit = str(winner or "").strip()

        with self._lock:
            pending = self._pending
            picked = explicit or (pending.user if pending else "")
            if not picked:
                raise NoWinnerToConfirm()

            lines = self.messages.recent(picked, limit=WINNER_MSGS_LIMIT)
            dedupe_token = pending.round_token if pending else f"manual:{picked}"
            bump = self.session.bump(value, dedupe_token)

            round_token = pending.round_token if pending else self._token_factory()
            self._history.appendleft(HistoryEntry(winner=picked, round_token=round_token, at=self._clock()))
            self._pending = None

        record = LedgerRecord(
            channel=self.channel,
            winner=picked,
            amount=value,
            winner_msgs=" | ".join(line.text for line in lines),
            mod=str(mod or "").strip() or self.default_mod,
        )

        logger.info("✅ Confirmed winner: %s", picked)
        if not bump.deduped:
            logger.info("Session total is now %s", bump.total)
        self._notify(f"Confirmed @{picked}! 🎉")
        self._dispatcher.dispatch(f"ledger-submit:{picked}", lambda: self._ledger.submit(record))

        return ConfirmResult(
            winner=picked,
            amount=value,
            round_token=round_token,
            session_total=bump.total,
            deduped=bump.deduped,
            messages=lines,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _draw(self, *, announce: str, verb: str) -> RollResult:
        with self._lock:
            candidates = self.entrants.members()
            if not candidates:
                self._pending = None
                winner = None
            else:
                user = candidates[self._choose_index(len(candidates))]
                winner = PendingWinner(user=user, round_token=self._token_factory(), since=self._clock())
                self._pending = winner

        if winner is None:
            logger.info("⚠️ Tried to %s, but no entrants", verb)
            return RollResult(winner=None, entrant_count=0)

        logger.info("🎲 %sed winner: %s", verb.capitalize(), winner.user)
        self._notify(announce.format(user=winner.user))
        return RollResult(winner=winner, entrant_count=len(candidates))

    def _notify(self, text: str) -> None:
        self._dispatcher.dispatch("notify", lambda: self._notifier.send(text))
