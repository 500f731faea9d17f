"""
In-process mutual exclusion for payroll writes.

CalculationGuard
    At most one in-flight calculation per (employee, period).  A second
    acquire for a held pair fails immediately with
    DuplicateCalculationInFlightError; it never waits.  The token is held
    for one compute-and-write, never for a whole batch.

PeriodLockRegistry
    One re-entrant lock per period.  Approval, payment and close hold it
    for their whole transaction; calculation writes hold it only around
    their short write transaction.  Combined with the status re-check
    inside that transaction, no calculation can land in a period after it
    was approved.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from payroll_kernel.exceptions import DuplicateCalculationInFlightError
from payroll_kernel.logging_config import get_logger

logger = get_logger("services.guard")


class CalculationGuard:
    """Registry of (employee_id, period_id) pairs currently being calculated."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._in_flight: set[tuple[str, str]] = set()

    def acquire(self, employee_id: str, period_id: str) -> None:
        key = (str(employee_id), str(period_id))
        with self._lock:
            if key in self._in_flight:
                logger.warning(
                    "duplicate_calculation_rejected",
                    extra={"employee_id": key[0], "period_id": key[1]},
                )
                raise DuplicateCalculationInFlightError(key[0], key[1])
            self._in_flight.add(key)

    def release(self, employee_id: str, period_id: str) -> None:
        with self._lock:
            self._in_flight.discard((str(employee_id), str(period_id)))

    def is_held(self, employee_id: str, period_id: str) -> bool:
        with self._lock:
            return (str(employee_id), str(period_id)) in self._in_flight

    @property
    def in_flight_count(self) -> int:
        with self._lock:
            return len(self._in_flight)

    @contextmanager
    def hold(self, employee_id: str, period_id: str) -> Iterator[None]:
        self.acquire(employee_id, period_id)
        try:
            yield
        finally:
            self.release(employee_id, period_id)


class PeriodLockRegistry:
    """Lazily created per-period locks."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def lock_for(self, period_id: str) -> threading.RLock:
        key = str(period_id)
        with self._lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, period_id: str) -> Iterator[None]:
        with self.lock_for(period_id):
            yield
