"""
payroll_batch.domain.types -- Frozen result types for a roster run.

Invariants enforced:
    - Every roster employee appears in exactly one of succeeded, failed or
      cancelled.  requires_review is a subset of succeeded.
    - Failures carry the machine-readable error code, never only a message.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class BatchRunStatus(str, Enum):
    """Outcome of a whole roster run."""

    COMPLETED = "completed"  # Every employee calculated
    PARTIALLY_COMPLETED = "partially_completed"  # Some employees failed
    FAILED = "failed"  # Nobody calculated
    CANCELLED = "cancelled"  # Stopped before every employee was launched


@dataclass(frozen=True)
class EmployeeFailure:
    """One employee the run could not calculate."""

    employee_id: str
    code: str
    message: str


@dataclass(frozen=True)
class BatchRunResult:
    """Immutable report of a roster run.

    Returned by ``PayrollBatchRunner.run()``.
    """

    batch_id: str
    period_id: str
    status: BatchRunStatus
    succeeded: tuple[str, ...] = ()
    requires_review: tuple[str, ...] = ()
    failed: tuple[EmployeeFailure, ...] = ()
    cancelled: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()  # Matching collar but not active
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0

    @property
    def total_employees(self) -> int:
        return len(self.succeeded) + len(self.failed) + len(self.cancelled)

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def cancelled_count(self) -> int:
        return len(self.cancelled)

    def failure_for(self, employee_id: str) -> EmployeeFailure | None:
        for failure in self.failed:
            if failure.employee_id == employee_id:
                return failure
        return None

    @staticmethod
    def status_for(succeeded: int, failed: int, cancelled: int) -> BatchRunStatus:
        if cancelled:
            return BatchRunStatus.CANCELLED
        if failed and not succeeded:
            return BatchRunStatus.FAILED
        if failed:
            return BatchRunStatus.PARTIALLY_COMPLETED
        return BatchRunStatus.COMPLETED
