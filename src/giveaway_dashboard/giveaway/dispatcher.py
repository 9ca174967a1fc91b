"""Detached side-effect execution for the giveaway state machine.

Commands never await chat messages or ledger submissions. They hand a job
factory to a dispatcher, which runs it in the background and only logs the
outcome.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, Protocol, Set

from giveaway_dashboard.utils.logger import get_logger

logger = get_logger(__name__)

Job = Callable[[], Awaitable[Any]]


class TaskDispatcher(Protocol):
    """Anything that can run a named job without blocking the caller."""

    def dispatch(self, name: str, job: Job) -> None:
        ...


class AsyncioTaskDispatcher:
    """Runs each job as a detached asyncio task on the service loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Attach the loop that jobs from other threads are handed to."""
        self._loop = loop

    def dispatch(self, name: str, job: Job) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is not None and (self._loop is None or running is self._loop):
            self._spawn(running, name, job)
            return

        if self._loop is None:
            raise RuntimeError(f"No event loop available to dispatch {name}")
        # Called from a worker thread: hand the job over to the service loop
        self._loop.call_soon_threadsafe(self._spawn, self._loop, name, job)

    def _spawn(self, loop: asyncio.AbstractEventLoop, name: str, job: Job) -> None:
        task = loop.create_task(self._run(name, job), name=f"giveaway-{name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, name: str, job: Job) -> None:
        try:
            await job()
            logger.debug("Detached task %s completed", name)
        except asyncio.CancelledError:
            logger.warning("Detached task %s cancelled", name)
            raise
        except Exception as exc:
            logger.error("Detached task %s failed: %s", name, exc)

    async def drain(self, timeout: float = 10.0) -> None:
        """Wait for outstanding jobs, cancelling whatever is left after ``timeout``."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        logger.info("Waiting for %d detached task(s) to finish", len(tasks))
        done, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning("Cancelled %d detached task(s) at shutdown", len(still_running))
