"""Exceptions raised by the giveaway core and its collaborators."""

from __future__ import annotations

from typing import Any


class GiveawayError(Exception):
    """Base class for command failures surfaced to the operator."""

    #: Message returned to dashboard clients.
    public_message = "giveaway error"


class InvalidAmount(GiveawayError):
    """Ledger bump with an amount that is not a finite number."""

    public_message = "invalid amount"

    def __init__(self, value: Any = None) -> None:
        super().__init__(f"invalid amount: {value!r}")
        self.value = value


class NotOpen(GiveawayError):
    """Stop requested while no round is accepting entries."""

    public_message = "Giveaway is not open."

    def __init__(self) -> None:
        super().__init__(self.public_message)


class NoWinnerToConfirm(GiveawayError):
    """Confirm requested with neither an explicit winner nor a pending one."""

    public_message = "No winner to confirm."

    def __init__(self) -> None:
        super().__init__(self.public_message)


class NotificationFailure(Exception):
    """The chat notifier could not deliver a message."""


class LedgerFailure(Exception):
    """The ledger webhook rejected or never acknowledged a record."""
