"""
Cancellable execution context for checks.

A ``CheckContext`` carries a deadline and a cancellation signal and nothing
else. Contexts form a tree: a child derived with ``with_timeout`` or
``with_deadline`` is cancelled together with its parent and never has a later
deadline than it.
"""

import asyncio
import time
from typing import Awaitable, List, Optional, TypeVar

T = TypeVar("T")


class ContextCancelled(Exception):
    """The context was cancelled before the work completed."""


class DeadlineExceeded(ContextCancelled):
    """The context deadline passed before the work completed."""


class CheckContext:
    """Deadline and cancellation signal for one or more checks."""

    def __init__(
        self, deadline: Optional[float] = None, parent: Optional["CheckContext"] = None
    ) -> None:
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self._deadline = deadline
        self._parent = parent
        self._cancelled = asyncio.Event()

    @classmethod
    def background(cls) -> "CheckContext":
        """Context without deadline that is never cancelled unless asked to."""
        return cls()

    @property
    def deadline(self) -> Optional[float]:
        """Deadline on the ``time.monotonic()`` clock, or None."""
        return self._deadline

    @property
    def cancelled(self) -> bool:
        return any(ctx._cancelled.is_set() for ctx in self._lineage())

    def cancel(self) -> None:
        """Cancel this context and every context derived from it."""
        self._cancelled.set()

    def remaining(self) -> Optional[float]:
        """Seconds left until the deadline (never negative), or None."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def with_deadline(self, deadline: float) -> "CheckContext":
        return CheckContext(deadline=deadline, parent=self)

    def with_timeout(self, seconds: float) -> "CheckContext":
        return self.with_deadline(time.monotonic() + seconds)

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` under this context.

        Raises:
            ContextCancelled: The context was cancelled first
            DeadlineExceeded: The deadline passed first
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise ContextCancelled("context canceled")

        work = asyncio.ensure_future(awaitable)

        watcher = asyncio.ensure_future(self._wait_cancelled())
        try:
            done, _ = await asyncio.wait(
                {work, watcher},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            watcher.cancel()
            if not work.done():
                await self._abandon(work)

        if work in done:
            return work.result()
        if watcher in done:
            raise ContextCancelled("context canceled")
        raise DeadlineExceeded("context deadline exceeded")

    def _lineage(self) -> List["CheckContext"]:
        contexts = []
        ctx: Optional[CheckContext] = self
        while ctx is not None:
            contexts.append(ctx)
            ctx = ctx._parent
        return contexts

    async def _wait_cancelled(self) -> None:
        waiters = [asyncio.ensure_future(ctx._cancelled.wait()) for ctx in self._lineage()]
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()

    @staticmethod
    async def _abandon(work: "asyncio.Future[T]") -> None:
        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
