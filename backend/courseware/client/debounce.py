"""Trailing-edge debouncing on the running event loop."""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)


class Debouncer:
    """Run ``action`` once the triggers stop for ``delay`` seconds.

    Every :meth:`trigger` restarts the timer and replaces the pending
    arguments, so only the latest call runs. An action that is already
    running is never interrupted.
    """

    def __init__(self, action: Callable[..., Awaitable[Any]], delay: float):
        self.action = action
        self.delay = delay
        self._timer: Optional[asyncio.Task] = None
        self._pending: Optional[tuple] = None
        self._running: Set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def _stop_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    def trigger(self, *args, **kwargs) -> None:
        self._pending = (args, kwargs)
        self._stop_timer()
        self._timer = asyncio.get_running_loop().create_task(asyncio.sleep(self.delay))
        self._timer.add_done_callback(self._on_timer_done)

    def _on_timer_done(self, timer: asyncio.Task) -> None:
        if timer.cancelled() or timer is not self._timer:
            return
        self._timer = None
        task = asyncio.get_running_loop().create_task(self._run_in_background())
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _run_in_background(self) -> None:
        try:
            await self._run_pending()
        except Exception as e:
            logger.error(f"Debounced call failed: {e}")

    async def _run_pending(self) -> Any:
        if self._pending is None:
            return None
        args, kwargs = self._pending
        self._pending = None
        return await self.action(*args, **kwargs)

    async def flush(self) -> Any:
        """Run the pending call now instead of waiting out the timer."""
        self._stop_timer()
        return await self._run_pending()

    async def join(self) -> None:
        """Wait until the timer has fired and every started call has finished."""
        while True:
            tasks = set(self._running)
            if self._timer is not None:
                tasks.add(self._timer)
            if not tasks:
                return
            await asyncio.wait(tasks)

    def cancel(self) -> None:
        """Drop the pending call."""
        self._stop_timer()
        self._pending = None
