"""Cooperative cancellation shared by discovery and benchmark execution.

A single :class:`CancellationSignal` covers "all current work". Every
suspension point calls :meth:`CancellationSignal.raise_if_cancelled` and the
process runner waits on the signal alongside the child process so a
cancellation terminates spawned toolchain commands instead of leaking them.

The :class:`CancellationController` hands out the current signal and, on
``cancel_all``, swaps in a fresh one. Work started afterwards is never
suppressed by the stale, already-cancelled signal.
"""

from __future__ import annotations

import asyncio

from .exceptions import OperationCancelled
from .logging_config import get_logger

logger = get_logger(__name__)


class CancellationSignal:
    """One-shot cancellation flag that coroutines can poll or await."""

    def __init__(self) -> None:
        self._cancelled = False
        self._waiters: list[asyncio.Future[None]] = []

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Fire the signal. Idempotent."""
        if self._cancelled:
            return
        self._cancelled = True
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

    def raise_if_cancelled(self, operation: str = "operation") -> None:
        """Raise OperationCancelled if the signal has fired."""
        if self._cancelled:
            raise OperationCancelled(operation)

    async def wait(self) -> None:
        """Suspend until the signal fires."""
        if self._cancelled:
            return
        # Futures are bound to the running loop at await time, so one signal
        # can be shared by tests that start several event loops.
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)


class CancellationController:
    """Owns the signal scoped to all current work."""

    def __init__(self) -> None:
        self._signal = CancellationSignal()

    @property
    def signal(self) -> CancellationSignal:
        return self._signal

    def cancel_all(self) -> CancellationSignal:
        """Cancel everything running on the current signal.

        Returns:
            The fresh signal that new work should use.
        """
        logger.info("Cancelling all running discovery and benchmark work")
        self._signal.cancel()
        self._signal = CancellationSignal()
        return self._signal
