"""Cooperative cancellation for try-on runs."""

import asyncio

from .errors import TryOnCancelledError


class CancellationToken:
    """Signal a running pipeline to stop at its next await point.

    The token is handed to ``TryOnPipeline.run`` and threaded through the
    image preparer, the FLUX client, the retry policy and the job poller.
    Calling ``cancel()`` wakes any sleep in progress.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str | None = None) -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TryOnCancelledError(self.reason or "Try-on run was cancelled")

    async def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first."""
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(seconds, 0.0))
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()

    async def run(self, awaitable):
        """Await ``awaitable``, abandoning it if the token is cancelled."""
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()
        if work.done():
            return work.result()
        work.cancel()
        await asyncio.wait({work})
        self.raise_if_cancelled()


async def cancellable_sleep(seconds: float, cancel: CancellationToken | None = None) -> None:
    """Sleep that honours an optional cancellation token."""
    if cancel is None:
        await asyncio.sleep(seconds)
    else:
        await cancel.sleep(seconds)


async def guarded(awaitable, cancel: CancellationToken | None = None):
    """Await ``awaitable`` under an optional cancellation token."""
    if cancel is None:
        return await awaitable
    return await cancel.run(awaitable)
