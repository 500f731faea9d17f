"""
DTOs -- Immutable results of a payroll calculation.

Responsibility:
    Defines the data structures that flow out of the engines and into the
    lifecycle controller: the per-component breakdowns (income, deductions,
    employer contributions), the structured warnings and review reasons that
    travel as data, and the assembled ``PayrollCalculation``.

Architecture position:
    Kernel > Domain -- pure, zero I/O. Engines construct these; ORM models
    convert to and from them at the persistence boundary.

Invariants enforced:
    - ``PayrollCalculation.net_pay == gross_income - total_deductions``
      (checked in ``__post_init__``).
    - A calculation with negative net pay is REQUIRES_REVIEW and carries a
      ReviewReason; the value is never clamped.

Data flow:
    IncomeBreakdown + DeductionBreakdown + EmployerContributions
        -> PayrollCalculation -> PayrollCalculationModel
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from payroll_kernel.domain.values import (
    ZERO,
    CalculationStatus,
    PeriodStatus,
    PeriodType,
)


@dataclass(frozen=True)
class PayrollWarning:
    """A non-fatal condition attached to a calculation record."""

    code: str
    message: str
    details: tuple[tuple[str, str], ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": dict(self.details)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PayrollWarning:
        return cls(
            code=data["code"],
            message=data["message"],
            details=tuple((k, str(v)) for k, v in data.get("details", {}).items()),
        )


OVERTIME_EXCEEDS_LEGAL_LIMIT = "OVERTIME_EXCEEDS_LEGAL_LIMIT"
NEGATIVE_NET_PAY = "NEGATIVE_NET_PAY"
BELOW_MINIMUM_WAGE = "BELOW_MINIMUM_WAGE"


@dataclass(frozen=True)
class ReviewReason:
    """Why a calculation needs a human decision before approval."""

    code: str
    gross_income: Decimal
    total_deductions: Decimal
    net_pay: Decimal

    def to_dict(self) -> dict[str, str]:
        return {
            "code": self.code,
            "gross_income": str(self.gross_income),
            "total_deductions": str(self.total_deductions),
            "net_pay": str(self.net_pay),
        }

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> ReviewReason:
        return cls(
            code=data["code"],
            gross_income=Decimal(data["gross_income"]),
            total_deductions=Decimal(data["total_deductions"]),
            net_pay=Decimal(data["net_pay"]),
        )


@dataclass(frozen=True)
class PeriodWindow:
    """The date facts of a payroll period the engines need."""

    period_type: PeriodType
    start_date: date
    end_date: date

    @property
    def calendar_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class SDIResult:
    """Integrated daily salary and how it was reached."""

    sdi: Decimal
    uncapped_sdi: Decimal
    integration_factor: Decimal
    years_of_service: int
    vacation_days: int
    cap: Decimal

    @property
    def capped(self) -> bool:
        return self.uncapped_sdi > self.sdi


@dataclass(frozen=True)
class IncomeBreakdown:
    """Gross income by component for one employee and period."""

    calendar_days: int
    worked_days: Decimal
    holidays_in_period: int
    hourly_rate: Decimal
    regular_salary: Decimal
    overtime_double_hours: Decimal
    overtime_triple_hours: Decimal
    overtime_double_amount: Decimal
    overtime_triple_amount: Decimal
    vacation_premium: Decimal
    aguinaldo: Decimal
    bonus: Decimal
    commission: Decimal
    other_income: Decimal
    gross_income: Decimal
    warnings: tuple[PayrollWarning, ...] = ()

    @property
    def overtime_amount(self) -> Decimal:
        return self.overtime_double_amount + self.overtime_triple_amount


@dataclass(frozen=True)
class DeductionBreakdown:
    """Statutory employee deductions plus ad-hoc deductions."""

    taxable_income: Decimal
    isr_tax: Decimal
    isr_subsidy: Decimal
    isr_withheld: Decimal
    contribution_base: Decimal
    imss_employee: Decimal
    imss_employee_components: tuple[tuple[str, Decimal], ...]
    infonavit_employee: Decimal
    other_deductions: Decimal = ZERO

    @property
    def statutory_deductions(self) -> Decimal:
        return self.isr_withheld + self.imss_employee + self.infonavit_employee

    @property
    def total_deductions(self) -> Decimal:
        return self.statutory_deductions + self.other_deductions


@dataclass(frozen=True)
class EmployerContributions:
    """Employer-side contributions; tracked, never deducted from net pay."""

    contribution_base: Decimal
    imss_employer: Decimal
    imss_employer_components: tuple[tuple[str, Decimal], ...]
    work_risk: Decimal
    infonavit_employer: Decimal
    retirement_savings: Decimal

    @property
    def total(self) -> Decimal:
        return (
            self.imss_employer
            + self.work_risk
            + self.infonavit_employer
            + self.retirement_savings
        )


@dataclass(frozen=True)
class PayrollCalculation:
    """The assembled, immutable result for one (employee, period)."""

    employee_id: str
    period_id: str
    table_year: int
    sdi: SDIResult
    income: IncomeBreakdown
    deductions: DeductionBreakdown
    employer: EmployerContributions
    gross_income: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    status: CalculationStatus
    warnings: tuple[PayrollWarning, ...] = ()
    review_reason: ReviewReason | None = None

    def __post_init__(self) -> None:
        if self.net_pay != self.gross_income - self.total_deductions:
            raise ValueError(
                f"net_pay {self.net_pay} != gross_income {self.gross_income} "
                f"- total_deductions {self.total_deductions}"
            )
        if self.status == CalculationStatus.REQUIRES_REVIEW and self.review_reason is None:
            raise ValueError("REQUIRES_REVIEW calculation must carry a review reason")

    @property
    def requires_review(self) -> bool:
        return self.status == CalculationStatus.REQUIRES_REVIEW


@dataclass(frozen=True)
class StoredCalculation:
    """A persisted calculation as read back from storage."""

    calculation_id: str
    employee_id: str
    period_id: str
    status: CalculationStatus
    version: int
    gross_income: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    employer_total: Decimal
    sdi: Decimal
    isr_withheld: Decimal
    imss_employee: Decimal
    infonavit_employee: Decimal
    warnings: tuple[PayrollWarning, ...] = ()
    review_reason: ReviewReason | None = None


@dataclass(frozen=True)
class PayrollPeriodInfo:
    """A payroll period as exposed to callers."""

    period_id: str
    period_code: str
    period_type: PeriodType
    year: int
    period_number: int
    start_date: date
    end_date: date
    payment_date: date
    status: PeriodStatus
    description: str = ""
    total_gross: Decimal = ZERO
    total_deductions: Decimal = ZERO
    total_net: Decimal = ZERO
    total_employer_contributions: Decimal = ZERO

    @property
    def window(self) -> PeriodWindow:
        return PeriodWindow(self.period_type, self.start_date, self.end_date)


@dataclass(frozen=True)
class PeriodSummary:
    """Totals and per-status counts for one period."""

    period: PayrollPeriodInfo
    employee_count: int
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    total_employer_contributions: Decimal
    status_counts: dict[str, int] = field(default_factory=dict)
    lines: tuple[StoredCalculation, ...] = ()
