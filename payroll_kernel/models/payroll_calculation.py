"""
Module: payroll_kernel.models.payroll_calculation
Responsibility: ORM persistence for the per-employee payroll calculation --
    the full income/deduction/employer breakdown plus its lifecycle status.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - Exactly one row per (employee_id, period_id) (unique constraint).
    - Amount columns are frozen once status is APPROVED or PROCESSED
      (db/immutability.py).

Audit relevance:
    version increments on every recompute; calculated/approved/processed
    and review-resolution timestamps and actors are stored on the row.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_kernel.db.base import TrackedBase, UUIDString
from payroll_kernel.domain.dtos import (
    PayrollCalculation,
    PayrollWarning,
    ReviewReason,
    StoredCalculation,
)
from payroll_kernel.domain.values import CalculationStatus, PaymentStatus

# Columns frozen once a calculation is APPROVED or PROCESSED.
AMOUNT_COLUMNS: tuple[str, ...] = (
    "sdi",
    "worked_days",
    "regular_salary",
    "overtime_amount",
    "vacation_premium",
    "aguinaldo",
    "bonus",
    "commission",
    "other_income",
    "gross_income",
    "isr_tax",
    "isr_subsidy",
    "isr_withheld",
    "imss_employee",
    "infonavit_employee",
    "other_deductions",
    "total_deductions",
    "net_pay",
    "imss_employer",
    "work_risk",
    "infonavit_employer",
    "retirement_savings",
    "employer_total",
    "breakdown",
    "warnings",
    "review_reason",
    "version",
)


class PayrollCalculationModel(TrackedBase):
    """One employee's payroll for one period."""

    __tablename__ = "payroll_calculations"

    __table_args__ = (
        UniqueConstraint("employee_id", "period_id", name="uq_calculation_employee_period"),
        Index("idx_calculation_period_status", "period_id", "status"),
    )

    employee_id: Mapped[str] = mapped_column(String(64), nullable=False)
    period_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payroll_periods.id"),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=CalculationStatus.PENDING.value,
        nullable=False,
    )
    payment_status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.PENDING.value,
        nullable=False,
    )
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    table_year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    sdi: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    worked_days: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    regular_salary: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    overtime_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    vacation_premium: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    aguinaldo: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    bonus: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    commission: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    other_income: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    gross_income: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    isr_tax: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    isr_subsidy: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    isr_withheld: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    imss_employee: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    infonavit_employee: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    other_deductions: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    imss_employer: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    work_risk: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    infonavit_employer: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    retirement_savings: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    employer_total: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    # Per-component detail (IMSS sub-components, overtime hours, SDI factor)
    breakdown: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    warnings: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    review_reason: Mapped[dict[str, str] | None] = mapped_column(JSON, nullable=True)

    calculated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    review_resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_resolved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    review_resolution_note: Mapped[str | None] = mapped_column(Text, nullable=True)

    period = relationship("PayrollPeriodModel", back_populates="calculations")

    def __repr__(self) -> str:
        return f"<PayrollCalculation {self.employee_id}@{self.period_id}: {self.status}>"

    @property
    def calculation_status(self) -> CalculationStatus:
        return CalculationStatus(self.status)

    def apply_result(self, result: PayrollCalculation, calculated_at: datetime) -> None:
        """Overwrite every amount column from a freshly assembled result."""
        income = result.income
        deductions = result.deductions
        employer = result.employer

        self.status = result.status.value
        self.table_year = result.table_year
        self.version = (self.version or 0) + 1

        self.sdi = result.sdi.sdi
        self.worked_days = income.worked_days
        self.regular_salary = income.regular_salary
        self.overtime_amount = income.overtime_amount
        self.vacation_premium = income.vacation_premium
        self.aguinaldo = income.aguinaldo
        self.bonus = income.bonus
        self.commission = income.commission
        self.other_income = income.other_income
        self.gross_income = result.gross_income

        self.isr_tax = deductions.isr_tax
        self.isr_subsidy = deductions.isr_subsidy
        self.isr_withheld = deductions.isr_withheld
        self.imss_employee = deductions.imss_employee
        self.infonavit_employee = deductions.infonavit_employee
        self.other_deductions = deductions.other_deductions
        self.total_deductions = result.total_deductions
        self.net_pay = result.net_pay

        self.imss_employer = employer.imss_employer
        self.work_risk = employer.work_risk
        self.infonavit_employer = employer.infonavit_employer
        self.retirement_savings = employer.retirement_savings
        self.employer_total = employer.total

        self.breakdown = {
            "years_of_service": result.sdi.years_of_service,
            "vacation_days": result.sdi.vacation_days,
            "integration_factor": str(result.sdi.integration_factor),
            "sdi_uncapped": str(result.sdi.uncapped_sdi),
            "sdi_capped": result.sdi.capped,
            "calendar_days": income.calendar_days,
            "holidays_in_period": income.holidays_in_period,
            "hourly_rate": str(income.hourly_rate),
            "overtime_double_hours": str(income.overtime_double_hours),
            "overtime_triple_hours": str(income.overtime_triple_hours),
            "overtime_double_amount": str(income.overtime_double_amount),
            "overtime_triple_amount": str(income.overtime_triple_amount),
            "taxable_income": str(deductions.taxable_income),
            "contribution_base": str(deductions.contribution_base),
            "imss_employee_components": {
                name: str(amount) for name, amount in deductions.imss_employee_components
            },
            "imss_employer_components": {
                name: str(amount) for name, amount in employer.imss_employer_components
            },
        }
        self.warnings = [w.to_dict() for w in result.warnings]
        self.review_reason = (
            result.review_reason.to_dict() if result.review_reason is not None else None
        )
        self.calculated_at = calculated_at
        self.review_resolved_at = None
        self.review_resolved_by_id = None
        self.review_resolution_note = None

    def to_dto(self) -> StoredCalculation:
        return StoredCalculation(
            calculation_id=str(self.id),
            employee_id=self.employee_id,
            period_id=str(self.period_id),
            status=CalculationStatus(self.status),
            version=self.version,
            gross_income=self.gross_income,
            total_deductions=self.total_deductions,
            net_pay=self.net_pay,
            employer_total=self.employer_total,
            sdi=self.sdi,
            isr_withheld=self.isr_withheld,
            imss_employee=self.imss_employee,
            infonavit_employee=self.infonavit_employee,
            warnings=tuple(PayrollWarning.from_dict(w) for w in (self.warnings or [])),
            review_reason=(
                ReviewReason.from_dict(self.review_reason)
                if self.review_reason
                else None
            ),
        )
