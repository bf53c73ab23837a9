"""
Request-scoped cancellation for in-flight executions.
"""

import asyncio


class RequestCancelled(Exception):
    """Raised inside the executor when its cancellation token fires."""

    def __init__(self, reason: str = "Request was cancelled"):
        self.reason = reason
        super().__init__(reason)


class CancellationToken:
    """
    A token passed into a single execution so the caller can abort it.

    Each execution gets its own token; nothing is shared between
    executions.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason = "Request was cancelled"

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str | None = None) -> None:
        if reason:
            self.reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RequestCancelled(self.reason)

    async def sleep(self, seconds: float) -> None:
        """Sleep for seconds, waking early with RequestCancelled if cancelled."""
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise RequestCancelled(self.reason)

    async def run(self, coro):
        """Await coro, abandoning it with RequestCancelled if the token fires first."""
        if self.cancelled:
            coro.close()
            raise RequestCancelled(self.reason)
        task = asyncio.ensure_future(coro)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if task in done:
            return task.result()
        task.cancel()
        raise RequestCancelled(self.reason)
