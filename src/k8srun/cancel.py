"""Cooperative cancellation for the blocking steps of a run."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from .errors import RunCancelled

logger = logging.getLogger(__name__)


class CancellationToken:
    """Thread-safe cancel flag shared between a caller and a run.

    Blocking steps either poll ``cancelled`` / ``wait()`` or register an
    ``on_cancel`` callback that unblocks them (e.g. closing a socket).
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self.reason = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def request_cancel(self, reason: str = "cancelled") -> None:
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for callback in callbacks:
            try:
                callback()
            except Exception as exc:
                logger.debug("Cancel callback %r failed: %s", callback, exc)

    def wait(self, timeout: float | None = None) -> bool:
        """Sleep up to *timeout* seconds; return ``True`` if cancelled."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelled(f"run {self.reason}")

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register *callback*; returns a function that unregisters it.

        Runs *callback* immediately if the token is already cancelled.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._discard(callback)
        callback()
        return lambda: None

    def cancel_after(self, seconds: float) -> threading.Timer:
        """Cancel the token once *seconds* elapse; returns the started timer."""
        timer = threading.Timer(
            seconds, self.request_cancel, kwargs={"reason": f"timed out after {seconds:g}s"}
        )
        timer.daemon = True
        timer.start()
        return timer

    def _discard(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
