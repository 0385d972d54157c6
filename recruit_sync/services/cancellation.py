"""
Cooperative cancellation for import runs.

The token is checked before every page fetch and every chunk send, and
pacing sleeps wake up as soon as it is cancelled.
"""

import asyncio

from recruit_sync.common.error_handling import ImportCancelledError


class CancellationToken:
    """One-way flag shared between a running pipeline and the cancel endpoint."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ImportCancelledError()

    async def sleep(self, seconds: float) -> None:
        """Sleep up to `seconds`, raising ImportCancelledError if cancelled meanwhile."""
        if seconds <= 0:
            self.raise_if_cancelled()
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()
