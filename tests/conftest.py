from __future__ import annotations

from typing import Any, Awaitable, Callable, List, Tuple

import pytest

from giveaway_dashboard.giveaway.entrants import EntrantSet
from giveaway_dashboard.giveaway.errors import LedgerFailure
from giveaway_dashboard.giveaway.message_store import MessageRingStore
from giveaway_dashboard.giveaway.models import LedgerRecord
from giveaway_dashboard.giveaway.state_machine import GiveawayStateMachine


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


class RecordingDispatcher:
    """Collects dispatched jobs without running them."""

    def __init__(self) -> None:
        self.jobs: List[Tuple[str, Callable[[], Awaitable[Any]]]] = []

    def dispatch(self, name: str, job: Callable[[], Awaitable[Any]]) -> None:
        self.jobs.append((name, job))

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.jobs]

    async def run_all(self) -> None:
        jobs, self.jobs = self.jobs, []
        for _, job in jobs:
            await job()


class FakeNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.sent: List[str] = []
        self.fail = fail

    async def send(self, text: str) -> None:
        if self.fail:
            raise RuntimeError("chat down")
        self.sent.append(text)


class FakeLedger:
    def __init__(self) -> None:
        self.records: List[LedgerRecord] = []

    async def submit(self, record: LedgerRecord) -> dict:
        self.records.append(record)
        return {"ok": True}


class FailingLedger:
    def __init__(self) -> None:
        self.attempts = 0

    async def submit(self, record: LedgerRecord) -> dict:
        self.attempts += 1
        raise LedgerFailure(f"sheet unreachable for {record.winner}")


class SequenceChooser:
    """Deterministic stand-in for secrets.randbelow."""

    def __init__(self, *indexes: int) -> None:
        self.indexes = list(indexes)
        self.calls: List[int] = []

    def __call__(self, n: int) -> int:
        self.calls.append(n)
        return self.indexes.pop(0) if self.indexes else 0


class TokenSequence:
    def __init__(self) -> None:
        self.count = 0

    def __call__(self) -> str:
        self.count += 1
        return f"tok-{self.count}"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def failing_notifier() -> FakeNotifier:
    return FakeNotifier(fail=True)


@pytest.fixture
def failing_ledger() -> FailingLedger:
    return FailingLedger()


@pytest.fixture
def chooser() -> SequenceChooser:
    return SequenceChooser()


@pytest.fixture
def make_machine(clock, dispatcher, notifier, ledger, chooser):
    def _make(**overrides: Any) -> GiveawayStateMachine:
        max_entrants = overrides.pop("max_entrants", 7500)
        kwargs = dict(
            notifier=notifier,
            ledger=ledger,
            dispatcher=dispatcher,
            channel="#streamer",
            entrants=EntrantSet(max_entrants),
            messages=MessageRingStore(clock=clock),
            choose_index=chooser,
            token_factory=TokenSequence(),
            clock=clock,
        )
        kwargs.update(overrides)
        return GiveawayStateMachine(**kwargs)

    return _make


@pytest.fixture
def machine(make_machine) -> GiveawayStateMachine:
    return make_machine()
