"""
Tests for the cancellable check context.
"""

import asyncio
import time

import pytest

from site_monitor.context import CheckContext, ContextCancelled, DeadlineExceeded


class TestCheckContext:
    """Test deadline and cancellation propagation."""

    def test_background_has_no_deadline(self):
        ctx = CheckContext.background()

        assert ctx.deadline is None
        assert ctx.remaining() is None
        assert ctx.cancelled is False

    def test_child_deadline_never_later_than_parent(self):
        parent = CheckContext.background().with_timeout(1)
        child = parent.with_timeout(60)

        assert child.deadline == parent.deadline

    def test_child_may_shorten_deadline(self):
        parent = CheckContext.background().with_timeout(60)
        child = parent.with_timeout(1)

        assert child.deadline < parent.deadline
        assert 0 < child.remaining() <= 1

    def test_cancel_propagates_to_children(self):
        parent = CheckContext.background()
        child = parent.with_timeout(60)

        parent.cancel()

        assert child.cancelled is True

    def test_cancel_does_not_propagate_to_parent(self):
        parent = CheckContext.background()
        child = parent.with_timeout(60)

        child.cancel()

        assert child.cancelled is True
        assert parent.cancelled is False

    def test_remaining_never_negative(self):
        ctx = CheckContext(deadline=time.monotonic() - 10)

        assert ctx.remaining() == 0.0

    @pytest.mark.asyncio
    async def test_run_returns_result(self):
        async def work():
            return 42

        assert await CheckContext.background().run(work()) == 42

    @pytest.mark.asyncio
    async def test_run_propagates_errors(self):
        async def work():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await CheckContext.background().run(work())

    @pytest.mark.asyncio
    async def test_run_deadline_exceeded(self):
        finished = []

        async def work():
            await asyncio.sleep(30)
            finished.append(True)

        with pytest.raises(DeadlineExceeded, match="deadline exceeded"):
            await CheckContext.background().with_timeout(0.05).run(work())

        assert finished == []

    @pytest.mark.asyncio
    async def test_run_cancelled_while_waiting(self):
        ctx = CheckContext.background()
        started = asyncio.Event()

        async def work():
            started.set()
            await asyncio.sleep(30)

        task = asyncio.create_task(ctx.with_timeout(60).run(work()))
        await started.wait()
        ctx.cancel()

        with pytest.raises(ContextCancelled, match="canceled"):
            await task

    @pytest.mark.asyncio
    async def test_run_on_cancelled_context_does_not_start_work(self):
        started = []

        async def work():
            started.append(True)

        ctx = CheckContext.background()
        ctx.cancel()

        with pytest.raises(ContextCancelled):
            await ctx.run(work())

        assert started == []

    @pytest.mark.asyncio
    async def test_deadline_exceeded_is_cancellation(self):
        """Deadline errors can be handled as cancellations."""
        with pytest.raises(ContextCancelled):
            await CheckContext(deadline=time.monotonic()).run(asyncio.sleep(1))
