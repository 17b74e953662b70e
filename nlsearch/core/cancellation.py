"""
Cooperative cancellation for blocking waits.

A CancellationSignal is handed to a blocking call; another thread sets it to make
the call stop at its next wait. Thread-safe.
"""

import logging
import threading

logger = logging.getLogger(__name__)


class CancellationSignal:
    """threading.Event plus the reason it was set."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason = ""

    @property
    def reason(self) -> str:
        with self._lock:
            return self._reason

    def cancel(self, reason: str = "request cancelled") -> None:
        """Set the signal. The first reason wins."""
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
        logger.info("[cancellation:cancel] reason=%s", reason)

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Block up to timeout seconds. Returns True if cancelled."""
        return self._event.wait(timeout)
