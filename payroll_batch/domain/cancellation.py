"""Cooperative cancellation for roster runs."""

import threading


class CancellationToken:
    """
    Set once, observed by the dispatcher before every launch.

    Cancelling never interrupts a calculation already running.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()
