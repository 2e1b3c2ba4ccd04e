"""Cooperative cancellation signal shared by orchestrator, queue and resolver."""

from __future__ import annotations

import asyncio
from typing import Optional

from ..errors import CancellationError


class CancelToken:
    """One-shot cancellation signal.

    Cancelling never interrupts running code; holders check ``cancelled`` or
    call ``raise_if_cancelled`` at their own suspension points, and
    ``sleep`` wakes up early when the token fires.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "Request aborted") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancellationError(self._reason or "Request aborted")

    async def sleep(self, delay: float) -> None:
        """Wait ``delay`` seconds, raising ``CancellationError`` as soon as the token fires."""
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()


async def cancellable_sleep(delay: float, token: CancelToken) -> None:
    await token.sleep(delay)
