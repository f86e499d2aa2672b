import threading
from typing import Callable, List

from infrastructure.logger import get_logger

logger = get_logger(__name__)


class CancelToken:
    """
    Per-request cancellation flag. Sleeps performed through the token wake up
    as soon as it is cancelled, and registered callbacks (usually closing an
    in-flight session) run once on cancel.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self):
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error("Cancel callback %r failed: %s", callback, e, exc_info=True)

    def sleep(self, seconds: float) -> bool:
        """
        Waits for `seconds` unless cancelled first.

        Returns:
            True if the full delay elapsed, False if woken by cancellation.
        """
        if seconds <= 0:
            return not self.cancelled
        return not self._event.wait(seconds)

    def register(self, callback: Callable[[], None]):
        """ Registers callback; runs it immediately if already cancelled. """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def unregister(self, callback: Callable[[], None]):
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
