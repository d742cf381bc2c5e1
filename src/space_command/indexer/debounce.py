"""Per-key debouncing of async callbacks on the running event loop."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class _Window:
    handle: asyncio.TimerHandle
    dirty: bool = False


class KeyedDebouncer:
    """
    Debounce calls per key with leading-edge triggering.

    The first schedule() for a key runs the callback at once and opens a
    quiet window. Further schedule() calls for that key inside the window
    reset its timer and are coalesced into one trailing call when the window
    closes. Keys never share a window, so a burst on one document cannot
    delay or suppress the rescan of another.
    """

    def __init__(
        self,
        callback: Callable[[str], Awaitable[None]],
        window: float = 0.1,
    ):
        if window < 0:
            raise ValueError(f"Debounce window must be >= 0, got {window}")
        self._callback = callback
        self._window = window
        self._windows: dict[str, _Window] = {}
        self._tasks: set[asyncio.Task] = set()

    @property
    def window(self) -> float:
        return self._window

    def schedule(self, key: str) -> None:
        loop = asyncio.get_running_loop()
        current = self._windows.get(key)
        if current is None:
            self._run(key)
            handle = loop.call_later(self._window, self._close_window, key)
            self._windows[key] = _Window(handle=handle)
            return

        current.handle.cancel()
        current.handle = loop.call_later(self._window, self._close_window, key)
        current.dirty = True

    def cancel(self, key: str) -> bool:
        """Drop a pending trailing call. Returns True if one was pending."""
        current = self._windows.pop(key, None)
        if current is None:
            return False
        current.handle.cancel()
        return current.dirty

    def cancel_all(self) -> None:
        for key in list(self._windows):
            self.cancel(key)

    def pending(self) -> set[str]:
        """Keys whose quiet window is still open."""
        return set(self._windows)

    async def drain(self) -> None:
        """Wait for callbacks that are already running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _close_window(self, key: str) -> None:
        current = self._windows.pop(key, None)
        if current is not None and current.dirty:
            self._run(key)

    def _run(self, key: str) -> None:
        task = asyncio.get_running_loop().create_task(self._invoke(key))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _invoke(self, key: str) -> None:
        try:
            await self._callback(key)
        except Exception:
            logger.exception("Debounced callback failed for %s", key)
