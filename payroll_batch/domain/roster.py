"""
Roster selection by pay frequency.

    weekly    blue and gray collar (unionized, paid weekly)
    biweekly  white collar
    monthly   everyone

Only ACTIVE employees are calculated.  Employees whose collar matches but
who are inactive, on leave or terminated are reported as skipped.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from payroll_kernel.domain.values import CollarType, Employee, PeriodType

COLLARS_BY_PERIOD_TYPE: dict[PeriodType, frozenset[CollarType]] = {
    PeriodType.WEEKLY: frozenset({CollarType.BLUE_COLLAR, CollarType.GRAY_COLLAR}),
    PeriodType.BIWEEKLY: frozenset({CollarType.WHITE_COLLAR}),
    PeriodType.MONTHLY: frozenset(CollarType),
}


@dataclass(frozen=True)
class RosterSelection:
    eligible: tuple[Employee, ...]
    skipped: tuple[str, ...]


def select_roster(employees: Iterable[Employee], period_type: PeriodType | str) -> RosterSelection:
    collars = COLLARS_BY_PERIOD_TYPE[PeriodType(period_type)]
    eligible: list[Employee] = []
    skipped: list[str] = []
    seen: set[str] = set()
    for employee in employees:
        if employee.employee_id in seen or employee.collar_type not in collars:
            continue
        seen.add(employee.employee_id)
        if employee.is_active:
            eligible.append(employee)
        else:
            skipped.append(employee.employee_id)
    return RosterSelection(eligible=tuple(eligible), skipped=tuple(skipped))
