"""
subscription.py
---------------
Live subscription to the message log.

One LiveSubscription is one standing query: every time the ordered log
changes, the callback receives the FULL current snapshot (never a delta).
The owner starts it when a session becomes active and stops it when the
session ends; a stopped subscription never delivers again.
"""

import logging
import threading
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0


class LiveSubscription:
    def __init__(
        self,
        fetch_snapshot: Callable[[], List[dict]],
        callback: Callable[[List[dict]], None],
        interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self._fetch_snapshot = fetch_snapshot
        self._callback = callback
        self.interval = interval

        self._last: Optional[List[dict]] = None
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def active(self) -> bool:
        return self._thread is not None and not self._stop_event.is_set()

    def start(self) -> None:
        """Deliver the current snapshot, then keep watching in the background."""
        if self._thread is not None:
            raise RuntimeError("subscription already started")
        # a failed first fetch raises here and leaves the subscription unstarted
        self.poll()
        self._thread = threading.Thread(target=self._run, name="message-log-subscription", daemon=True)
        self._thread.start()

    def poll(self) -> bool:
        """Fetch once; returns True if a changed snapshot was delivered."""
        with self._lock:
            if self._stop_event.is_set():
                return False
            snapshot = self._fetch_snapshot()
            if self._stop_event.is_set() or snapshot == self._last:
                return False
            self._callback(list(snapshot))
            self._last = snapshot
            return True

    def stop(self) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread() and thread.is_alive():
            thread.join(timeout=self.interval + 1)

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self.poll()
            except Exception:
                logger.exception("message log poll failed; retrying in %.1fs", self.interval)
