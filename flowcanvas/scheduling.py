"""
Debounced scheduling.

A ScheduledTask is an owned, cancellable handle for "run this callback once,
after things have been quiet for a while". Scheduling again replaces the
pending call.
"""

from typing import Callable, Optional
import asyncio
import logging


logger = logging.getLogger(__name__)


class ScheduledTask:
    """
    A single debounced callback slot.

    Uses the running event loop's timer. Without a running loop (plain
    synchronous callers) the callback runs immediately.

    Usage:
        autosave = ScheduledTask("autosave")
        autosave.schedule(1.0, save)   # replaces any pending save
        autosave.cancel()              # safe to call repeatedly
    """

    def __init__(self, name: str = "task"):
        self.name = name
        self._handle: Optional[asyncio.TimerHandle] = None
        self._callback: Optional[Callable[[], None]] = None

    @property
    def pending(self) -> bool:
        """True while a callback is waiting to fire."""
        return self._handle is not None

    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        """Run callback after delay seconds, replacing any pending call."""
        self.cancel()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None or delay <= 0:
            self._run(callback)
            return

        self._callback = callback
        self._handle = loop.call_later(delay, self._fire)

    def cancel(self) -> bool:
        """Cancel the pending call. Returns True if one was pending."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        self._callback = None
        logger.debug(f"Cancelled pending {self.name}")
        return True

    def flush(self) -> bool:
        """Run the pending callback now. Returns True if one was pending."""
        callback = self._callback
        if not self.cancel() or callback is None:
            return False
        self._run(callback)
        return True

    def _fire(self) -> None:
        callback = self._callback
        self._handle = None
        self._callback = None
        if callback is not None:
            self._run(callback)

    def _run(self, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as e:
            logger.error(f"Scheduled {self.name} failed: {e}")
