"""Cooperative cancellation shared by retries, chunked batches and reconciliation."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

from storesync.errors import OperationCancelledError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

type Sleeper = Callable[[float], Awaitable[None]]


class CancellationToken:
    """Flag checked between attempts and chunks; also interrupts pending sleeps."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(self._reason or "Operation cancelled")

    async def sleep(self, seconds: float, *, sleeper: Sleeper = asyncio.sleep) -> None:
        """Sleep for ``seconds`` unless cancelled first."""

        self.raise_if_cancelled()
        if seconds <= 0:
            return
        sleep_task = asyncio.ensure_future(sleeper(seconds))
        cancel_task = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({sleep_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleep_task, cancel_task):
                if not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task
        self.raise_if_cancelled()


async def pause(
    seconds: float,
    *,
    cancellation: CancellationToken | None = None,
    sleeper: Sleeper = asyncio.sleep,
) -> None:
    if cancellation is not None:
        await cancellation.sleep(seconds, sleeper=sleeper)
    elif seconds > 0:
        await sleeper(seconds)
