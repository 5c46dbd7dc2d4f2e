"""
Hidden key-sequence detector that toggles anonymization.

Pressing the activation key three times within a two-second window fires the
callback. Presses are kept in an explicit list together with a single
deferred reset action that is replaced on every keypress, so only a period
of real inactivity clears the sequence.
"""

import asyncio
import logging
import threading
import time
from collections.abc import Callable
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> Any: ...


Scheduler = Callable[[float, Callable[[], None]], Cancellable]


def asyncio_scheduler(delay: float, callback: Callable[[], None]) -> Cancellable:
    """Schedule on the running event loop, or on a timer thread without one."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer
    return loop.call_later(delay, callback)


class KeySequenceDetector:
    """Detects repeated presses of one key inside a rolling time window."""

    def __init__(
        self,
        on_activate: Callable[[], Any],
        key: str = "a",
        window_seconds: float = 2.0,
        required_presses: int = 3,
        clock: Callable[[], float] = time.monotonic,
        scheduler: Scheduler | None = None,
    ):
        self.on_activate = on_activate
        self.key = key.lower()
        self.window_seconds = window_seconds
        self.required_presses = required_presses
        self.clock = clock
        self.scheduler = scheduler or asyncio_scheduler
        self.presses: list[float] = []
        self.reset_handle: Cancellable | None = None

    def _schedule_reset(self):
        if self.reset_handle is not None:
            self.reset_handle.cancel()
        self.reset_handle = self.scheduler(self.window_seconds, self.reset)

    def reset(self):
        """Clear the accumulated sequence."""
        if self.presses:
            logger.debug(f"Key sequence reset after {len(self.presses)} press(es)")
        self.presses = []
        self.reset_handle = None

    def press(self, key: str) -> bool:
        """
        Register a keypress.

        Args:
            key: The pressed key; anything but the activation key is ignored

        Returns:
            True if this press completed the sequence and fired the callback
        """
        if key.lower() != self.key:
            return False

        now = self.clock()
        if self.presses and now - self.presses[0] > self.window_seconds:
            # Too late for the running sequence; this press starts a new one
            self.presses = [now]
        else:
            self.presses.append(now)

        self._schedule_reset()

        if len(self.presses) >= self.required_presses:
            recent = self.presses[-self.required_presses:]
            if recent[-1] - recent[0] <= self.window_seconds:
                self.presses = []
                if self.reset_handle is not None:
                    self.reset_handle.cancel()
                    self.reset_handle = None
                logger.debug("Activation sequence detected")
                self.on_activate()
                return True

        return False

    def close(self):
        """Cancel any pending reset."""
        if self.reset_handle is not None:
            self.reset_handle.cancel()
            self.reset_handle = None
