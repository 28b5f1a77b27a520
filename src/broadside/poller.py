"""PollTask: a cancellable background loop that calls *tick* every *interval* seconds."""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class PollTask:
    """
    Runs *tick* once immediately, then again after every *interval* seconds,
    on a daemon thread until cancel() is called.
    """

    def __init__(self, tick: Callable[[], None], interval: float, name: str = "broadside-poll") -> None:
        self.interval = interval
        self._tick = tick
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        """Stop scheduling ticks. A tick already running finishes, but no new one starts."""
        self._stop.set()

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def _run(self) -> None:
        logger.debug("Poll loop started (interval %.2fs)", self.interval)
        while not self._stop.is_set():
            try:
                self._tick()
            except Exception:
                # keep polling; the next tick may well succeed
                logger.exception("Poll tick crashed")
            if self._stop.wait(timeout=self.interval):
                break
        logger.debug("Poll loop stopped")
