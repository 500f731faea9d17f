"""
Module: payroll_kernel.models.payroll_period
Responsibility: ORM persistence for payroll periods -- the pay cycle that owns
    every per-employee calculation and whose status gates what may be written.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - period_code is unique.
    - Status only advances OPEN -> CALCULATED -> APPROVED -> PAID -> CLOSED
      (enforced by the lifecycle service; CLOSED rows are additionally
      protected by db/immutability.py).

Audit relevance:
    approved/paid/closed timestamps and actors record who finalized each
    pay cycle.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_kernel.db.base import TrackedBase, UUIDString
from payroll_kernel.domain.dtos import PayrollPeriodInfo
from payroll_kernel.domain.values import PeriodStatus, PeriodType


class PayrollPeriodModel(TrackedBase):
    """
    A payroll period (weekly, biweekly or monthly pay cycle).

    Guarantees:
        - start_date <= end_date <= payment_date (enforced at creation by
          PayrollPeriodService).
        - Non-overlap with periods of the same type is checked at creation.
    """

    __tablename__ = "payroll_periods"

    __table_args__ = (
        UniqueConstraint("period_code", name="uq_payroll_period_code"),
        Index("idx_payroll_period_dates", "start_date", "end_date"),
        Index("idx_payroll_period_status", "status"),
    )

    # e.g. "2025-BW01", "2025-W07", "2025-M03"
    period_code: Mapped[str] = mapped_column(String(20), nullable=False)

    period_type: Mapped[str] = mapped_column(String(20), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_number: Mapped[int] = mapped_column(Integer, nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)

    description: Mapped[str] = mapped_column(String(255), default="", nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=PeriodStatus.OPEN.value,
        nullable=False,
    )

    total_gross: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    total_net: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    total_employer_contributions: Mapped[Decimal] = mapped_column(
        default=Decimal("0"), nullable=False
    )

    calculated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    calculations = relationship(
        "PayrollCalculationModel",
        back_populates="period",
        lazy="select",
    )

    def __repr__(self) -> str:
        return f"<PayrollPeriod {self.period_code}: {self.status}>"

    @property
    def period_status(self) -> PeriodStatus:
        return PeriodStatus(self.status)

    @property
    def is_closed(self) -> bool:
        return self.status == PeriodStatus.CLOSED.value

    @property
    def accepts_calculations(self) -> bool:
        """Calculations may be written while OPEN or CALCULATED."""
        return self.status in (PeriodStatus.OPEN.value, PeriodStatus.CALCULATED.value)

    def to_dto(self) -> PayrollPeriodInfo:
        return PayrollPeriodInfo(
            period_id=str(self.id),
            period_code=self.period_code,
            period_type=PeriodType(self.period_type),
            year=self.year,
            period_number=self.period_number,
            start_date=self.start_date,
            end_date=self.end_date,
            payment_date=self.payment_date,
            status=PeriodStatus(self.status),
            description=self.description,
            total_gross=self.total_gross,
            total_deductions=self.total_deductions,
            total_net=self.total_net,
            total_employer_contributions=self.total_employer_contributions,
        )
