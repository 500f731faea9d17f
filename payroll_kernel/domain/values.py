"""
Values -- Enumerations and immutable input records for a payroll run.

Responsibility:
    Defines the vocabulary shared by every layer (period types, collar types,
    lifecycle statuses) and the read-only inputs the engine consumes from
    outside collaborators: the employee record, the approved incidence
    aggregate, and the optional housing-fund credit.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - Monetary fields are Decimal, never float.
    - Hour and day counts are non-negative.
    - Inputs are frozen; an employee cannot change mid-calculation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

ZERO = Decimal("0")


class PeriodType(str, Enum):
    """Pay frequency of a payroll period."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class CollarType(str, Enum):
    """Employee classification; determines pay frequency and union status."""

    WHITE_COLLAR = "white_collar"
    BLUE_COLLAR = "blue_collar"
    GRAY_COLLAR = "gray_collar"


class EmploymentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_LEAVE = "on_leave"
    TERMINATED = "terminated"


class PeriodStatus(str, Enum):
    """
    Lifecycle of a payroll period.

    Forward-only: OPEN -> CALCULATED -> APPROVED -> PAID -> CLOSED.
    CLOSED is terminal.
    """

    OPEN = "open"
    CALCULATED = "calculated"
    APPROVED = "approved"
    PAID = "paid"
    CLOSED = "closed"


class CalculationStatus(str, Enum):
    """
    Lifecycle of one employee's calculation within a period.

    PENDING -> CALCULATED | REQUIRES_REVIEW -> APPROVED -> PROCESSED.
    APPROVED and PROCESSED are locked.
    """

    PENDING = "pending"
    CALCULATED = "calculated"
    REQUIRES_REVIEW = "requires_review"
    APPROVED = "approved"
    PROCESSED = "processed"

    @property
    def is_locked(self) -> bool:
        return self in (CalculationStatus.APPROVED, CalculationStatus.PROCESSED)


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class HousingCreditType(str, Enum):
    """How an employee's housing-fund credit discount is expressed."""

    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    UMA_MULTIPLE = "uma_multiple"


# Ordered forward transitions for the period state machine.
PERIOD_TRANSITIONS: dict[PeriodStatus, PeriodStatus] = {
    PeriodStatus.OPEN: PeriodStatus.CALCULATED,
    PeriodStatus.CALCULATED: PeriodStatus.APPROVED,
    PeriodStatus.APPROVED: PeriodStatus.PAID,
    PeriodStatus.PAID: PeriodStatus.CLOSED,
}


@dataclass(frozen=True)
class HousingCredit:
    """An active housing-fund credit the employer must discount."""

    credit_type: HousingCreditType
    value: Decimal

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError("housing credit value cannot be negative")


@dataclass(frozen=True)
class Employee:
    """
    Employee record as supplied by the HR system.

    ``daily_salary`` and ``hire_date`` are Optional because upstream data
    can be incomplete; the engine rejects such records per employee rather
    than failing the batch.
    """

    employee_id: str
    daily_salary: Decimal | None
    hire_date: date | None
    collar_type: CollarType
    employment_status: EmploymentStatus = EmploymentStatus.ACTIVE
    employee_number: str = ""
    full_name: str = ""
    housing_credit: HousingCredit | None = None

    @property
    def is_active(self) -> bool:
        return self.employment_status == EmploymentStatus.ACTIVE

    def missing_fields(self) -> list[str]:
        missing = []
        if self.daily_salary is None or self.daily_salary <= 0:
            missing.append("daily_salary")
        if self.hire_date is None:
            missing.append("hire_date")
        return missing


@dataclass(frozen=True)
class IncidenceAggregate:
    """
    Approved incidences for one employee in one period.

    ``overtime_single_hours`` are hours not yet split into tiers; the income
    aggregator applies the weekly double-rate ceiling to them.
    ``overtime_double_hours`` and ``overtime_triple_hours`` arrive already
    classified and are paid as given.
    """

    employee_id: str
    overtime_single_hours: Decimal = ZERO
    overtime_double_hours: Decimal = ZERO
    overtime_triple_hours: Decimal = ZERO
    paid_absence_days: Decimal = ZERO
    unpaid_absence_days: Decimal = ZERO
    vacation_days_taken: Decimal = ZERO
    bonus_amount: Decimal = ZERO
    commission_amount: Decimal = ZERO
    other_income_amount: Decimal = ZERO
    other_deduction_amount: Decimal = ZERO

    def __post_init__(self) -> None:
        for name in (
            "overtime_single_hours",
            "overtime_double_hours",
            "overtime_triple_hours",
            "paid_absence_days",
            "unpaid_absence_days",
            "vacation_days_taken",
            "bonus_amount",
            "commission_amount",
            "other_income_amount",
            "other_deduction_amount",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")

    @classmethod
    def empty(cls, employee_id: str) -> IncidenceAggregate:
        return cls(employee_id=employee_id)
