"""
payroll_batch.domain -- Pure types for roster runs.

ZERO I/O.  Result types are frozen dataclasses.
"""

from payroll_batch.domain.cancellation import CancellationToken
from payroll_batch.domain.roster import RosterSelection, select_roster
from payroll_batch.domain.types import BatchRunResult, BatchRunStatus, EmployeeFailure

__all__ = [
    "BatchRunResult",
    "BatchRunStatus",
    "CancellationToken",
    "EmployeeFailure",
    "RosterSelection",
    "select_roster",
]
