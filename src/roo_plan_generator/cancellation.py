"""Cooperative cancellation shared by every stage of a run."""

from __future__ import annotations

import threading


class CancellationSignal(Exception):
    """Raised when a stage observes that cancellation was requested."""

    def __init__(self, where: str = ""):
        self.where = where
        super().__init__(f"Cancelled{f' during {where}' if where else ''}")


class CancellationToken:
    """One-way flag passed by reference to the pipeline, stages and LLM client.

    Once ``cancel()`` has been called the token stays set for the rest of the
    run. ``wait()`` doubles as an interruptible sleep for retry backoff.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, where: str = "") -> None:
        if self._event.is_set():
            raise CancellationSignal(where)

    def wait(self, seconds: float) -> bool:
        """Sleep up to *seconds*; return True early if cancellation arrives."""
        return self._event.wait(timeout=max(0.0, seconds))
