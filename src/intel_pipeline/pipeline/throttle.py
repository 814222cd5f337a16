"""
Step Throttle - Courtesy pause between consecutive connector calls.

The delay is global to a run (not per domain): any two executed steps are
separated by at least `delay` seconds, measured from the end of the previous
step. Waiting happens on a threading.Event so cancellation cuts it short.
"""

import logging
import threading
import time
from typing import Optional


class StepThrottle:
    """Fixed minimum interval between steps."""

    def __init__(self, delay: float = 2.0):
        self.delay = max(0.0, delay)
        self.last_step_time: Optional[float] = None
        self.total_wait = 0.0
        self.logger = logging.getLogger(self.__class__.__name__)

    def wait_if_needed(self, cancel_event: Optional[threading.Event] = None) -> bool:
        """
        Sleep until the interval since the last step has elapsed.

        Returns:
            False if cancelled while waiting, True otherwise
        """
        if self.last_step_time is None or self.delay <= 0:
            return not (cancel_event and cancel_event.is_set())

        elapsed = time.monotonic() - self.last_step_time
        remaining = self.delay - elapsed
        if remaining <= 0:
            return not (cancel_event and cancel_event.is_set())

        self.logger.debug(f"Throttling: sleeping {remaining:.2f}s")
        self.total_wait += remaining
        if cancel_event is None:
            time.sleep(remaining)
            return True
        return not cancel_event.wait(remaining)

    def mark_step(self):
        """Record that a step just finished."""
        self.last_step_time = time.monotonic()
