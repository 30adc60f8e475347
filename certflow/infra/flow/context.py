# certflow/infra/flow/context.py
"""
Cancellable, deadline-bearing context threaded through a flow run.

Cancellation is cooperative: the scheduler checks the context before each
wave and before each attempt, and the retry delay wakes up as soon as the
context is cancelled. Task bodies that block for a long time should observe
the same context themselves.
"""
from __future__ import annotations

import asyncio
import time
from typing import Optional

from certflow.infra.flow.errors import FlowCancelledError


class RunContext:
    """
    Cancellation signal plus an optional deadline.

    Example:
        ```python
        ctx = RunContext(timeout=30)
        await flow.run(ctx)
        ```
    """

    def __init__(self, timeout: Optional[float] = None, *, parent: Optional[RunContext] = None):
        """
        Initialize the context.

        Args:
            timeout: Seconds from now after which the context expires (None = no deadline)
            parent: Optional parent context whose cancellation and deadline are inherited
        """
        self._parent = parent
        self._cancelled = asyncio.Event()
        deadline = time.monotonic() + timeout if timeout is not None else None
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline: Optional[float] = deadline

    @classmethod
    def background(cls) -> RunContext:
        """A context that is never cancelled and has no deadline."""
        return cls()

    # ================================================================
    #                   STATE
    # ================================================================

    def cancel(self) -> None:
        """Signal cancellation to everything observing this context."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    @property
    def reason(self) -> Optional[str]:
        """Why the context is done, or None while it is still live."""
        if self.cancelled:
            return FlowCancelledError.CANCELLED
        if self.expired:
            return FlowCancelledError.DEADLINE_EXCEEDED
        return None

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline (None without a deadline)."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self, what: str) -> None:
        """
        Raise if the context is done.

        Args:
            what: Description used in the error message (e.g. "pipeline coc")

        Raises:
            FlowCancelledError: If the context was cancelled or has expired
        """
        reason = self.reason
        if reason is not None:
            raise FlowCancelledError(what, reason)

    # ================================================================
    #                   WAITING
    # ================================================================

    async def sleep(self, seconds: float) -> bool:
        """
        Wait up to `seconds`, waking early on cancellation or deadline.

        Args:
            seconds: Requested wait

        Returns:
            True if the wait was interrupted (context done), False otherwise
        """
        if self.done:
            return True
        remaining = self.remaining()
        wait_for = seconds if remaining is None else min(seconds, remaining)
        try:
            await asyncio.wait_for(self.wait_cancelled(), timeout=wait_for)
        except TimeoutError:
            pass
        return self.done

    async def wait_cancelled(self) -> None:
        """Block until this context or one of its parents is cancelled."""
        if self._parent is None:
            await self._cancelled.wait()
            return
        waiters = [
            asyncio.ensure_future(self._cancelled.wait()),
            asyncio.ensure_future(self._parent.wait_cancelled()),
        ]
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()
