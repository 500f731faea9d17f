"""
PayrollPeriodService -- period creation, lookup, totals and summaries.

Responsibility:
    Creates payroll periods after validating their definition, reads them
    back as frozen DTOs, and recomputes period totals from the stored
    calculations.  Status transitions live in PayrollLifecycleService,
    which calls into this service inside its own transactions.

Architecture position:
    Kernel > Services -- imperative shell.  Flush-only: never commits.

Invariants enforced:
    - Period code matches YYYY-W##, YYYY-BW## or YYYY-M## for its type.
    - start_date <= end_date <= payment_date.
    - Calendar days covered (inclusive) are 6-8 weekly, 13-16 biweekly,
      28-31 monthly.
    - No two periods of the same type overlap.

Failure modes:
    - InvalidPeriodDefinitionError: bad code, dates, duration, or a
      duplicate code.
    - PeriodOverlapError: overlaps an existing period of the same type.
    - PeriodNotFoundError: unknown period id.
"""

from __future__ import annotations

import re
from collections import Counter
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from payroll_kernel.domain.dtos import PayrollPeriodInfo, PeriodSummary
from payroll_kernel.domain.values import CalculationStatus, PeriodStatus, PeriodType
from payroll_kernel.exceptions import (
    InvalidPeriodDefinitionError,
    PeriodNotFoundError,
    PeriodOverlapError,
)
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.payroll_calculation import PayrollCalculationModel
from payroll_kernel.models.payroll_period import PayrollPeriodModel
from payroll_kernel.services.base import BaseService

logger = get_logger("services.period")

PERIOD_CODE_PATTERN = re.compile(r"^(\d{4})-(BW|W|M)(\d{2})$")

_CODE_PREFIX = {
    PeriodType.WEEKLY: "W",
    PeriodType.BIWEEKLY: "BW",
    PeriodType.MONTHLY: "M",
}

# Allowed calendar days (start and end inclusive) per period type.
_DURATION_RANGE = {
    PeriodType.WEEKLY: (6, 8),
    PeriodType.BIWEEKLY: (13, 16),
    PeriodType.MONTHLY: (28, 31),
}

_MAX_PERIOD_NUMBER = {
    PeriodType.WEEKLY: 53,
    PeriodType.BIWEEKLY: 27,
    PeriodType.MONTHLY: 12,
}


def parse_period_code(period_code: str, period_type: PeriodType) -> tuple[int, int]:
    """
    Return (year, period_number) for a period code.

    Raises:
        InvalidPeriodDefinitionError: if the code is malformed or does not
            match the period type.
    """
    match = PERIOD_CODE_PATTERN.match(period_code)
    if match is None:
        raise InvalidPeriodDefinitionError(
            period_code, "code must look like YYYY-W##, YYYY-BW## or YYYY-M##"
        )
    year, prefix, number = int(match.group(1)), match.group(2), int(match.group(3))
    if prefix != _CODE_PREFIX[period_type]:
        raise InvalidPeriodDefinitionError(
            period_code,
            f"code prefix {prefix} does not match period type {period_type.value}",
        )
    if not 1 <= number <= _MAX_PERIOD_NUMBER[period_type]:
        raise InvalidPeriodDefinitionError(
            period_code, f"period number {number} out of range for {period_type.value}"
        )
    return year, number


def validate_period_dates(
    period_code: str,
    period_type: PeriodType,
    start_date: date,
    end_date: date,
    payment_date: date,
) -> None:
    if start_date > end_date:
        raise InvalidPeriodDefinitionError(
            period_code, f"start_date {start_date} is after end_date {end_date}"
        )
    if payment_date < end_date:
        raise InvalidPeriodDefinitionError(
            period_code, f"payment_date {payment_date} is before end_date {end_date}"
        )
    low, high = _DURATION_RANGE[period_type]
    span = (end_date - start_date).days + 1
    if not low <= span <= high:
        raise InvalidPeriodDefinitionError(
            period_code,
            f"{period_type.value} period covers {span} days; expected {low}-{high}",
        )


class PayrollPeriodService(BaseService):
    """Creates and reads payroll periods within the caller's transaction."""

    def create_period(
        self,
        period_code: str,
        period_type: PeriodType | str,
        start_date: date,
        end_date: date,
        payment_date: date,
        actor_id: UUID,
        description: str = "",
    ) -> PayrollPeriodInfo:
        """
        Create a new OPEN payroll period.

        Raises:
            InvalidPeriodDefinitionError: bad code, dates or duration, or
                the code already exists.
            PeriodOverlapError: overlaps a period of the same type.
        """
        period_type = PeriodType(period_type)
        year, number = parse_period_code(period_code, period_type)
        validate_period_dates(period_code, period_type, start_date, end_date, payment_date)

        existing = self.session.execute(
            select(PayrollPeriodModel).where(PayrollPeriodModel.period_code == period_code)
        ).scalar_one_or_none()
        if existing is not None:
            raise InvalidPeriodDefinitionError(period_code, "period code already exists")

        self._validate_no_overlap(period_code, period_type, start_date, end_date)

        period = PayrollPeriodModel(
            period_code=period_code,
            period_type=period_type.value,
            year=year,
            period_number=number,
            start_date=start_date,
            end_date=end_date,
            payment_date=payment_date,
            description=description,
            status=PeriodStatus.OPEN.value,
            created_by_id=actor_id,
        )
        self.session.add(period)
        self.session.flush()

        logger.info(
            "period_created",
            extra={
                "period_code": period_code,
                "period_type": period_type.value,
                "start_date": start_date,
                "end_date": end_date,
                "payment_date": payment_date,
                "actor_id": str(actor_id),
            },
        )
        return period.to_dto()

    def _validate_no_overlap(
        self,
        period_code: str,
        period_type: PeriodType,
        start_date: date,
        end_date: date,
    ) -> None:
        overlapping = self.session.execute(
            select(PayrollPeriodModel)
            .where(
                PayrollPeriodModel.period_type == period_type.value,
                PayrollPeriodModel.start_date <= end_date,
                PayrollPeriodModel.end_date >= start_date,
            )
            .limit(1)
        ).scalar_one_or_none()
        if overlapping is not None:
            logger.warning(
                "period_overlap_rejected",
                extra={
                    "period_code": period_code,
                    "existing_period_code": overlapping.period_code,
                },
            )
            raise PeriodOverlapError(period_code, overlapping.period_code)

    def get_model(self, period_id: str | UUID, for_update: bool = False) -> PayrollPeriodModel:
        """
        Load the ORM row, optionally with SELECT ... FOR UPDATE.

        Raises:
            PeriodNotFoundError: unknown id.
        """
        stmt = select(PayrollPeriodModel).where(PayrollPeriodModel.id == coerce_uuid(period_id))
        if for_update:
            stmt = stmt.with_for_update()
        period = self.session.execute(stmt).scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return period

    def get_period(self, period_id: str | UUID) -> PayrollPeriodInfo:
        return self.get_model(period_id).to_dto()

    def get_by_code(self, period_code: str) -> PayrollPeriodInfo:
        period = self.session.execute(
            select(PayrollPeriodModel).where(PayrollPeriodModel.period_code == period_code)
        ).scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(period_code)
        return period.to_dto()

    def list_periods(
        self,
        period_type: PeriodType | str | None = None,
        year: int | None = None,
        status: PeriodStatus | str | None = None,
    ) -> list[PayrollPeriodInfo]:
        stmt = select(PayrollPeriodModel)
        if period_type is not None:
            stmt = stmt.where(PayrollPeriodModel.period_type == PeriodType(period_type).value)
        if year is not None:
            stmt = stmt.where(PayrollPeriodModel.year == year)
        if status is not None:
            stmt = stmt.where(PayrollPeriodModel.status == PeriodStatus(status).value)
        stmt = stmt.order_by(PayrollPeriodModel.start_date)
        return [p.to_dto() for p in self.session.execute(stmt).scalars()]

    def calculations_for(
        self, period_id: str | UUID, for_update: bool = False
    ) -> list[PayrollCalculationModel]:
        stmt = (
            select(PayrollCalculationModel)
            .where(PayrollCalculationModel.period_id == coerce_uuid(period_id))
            .order_by(PayrollCalculationModel.employee_id)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return list(self.session.execute(stmt).scalars())

    def refresh_totals(self, period: PayrollPeriodModel) -> None:
        """Recompute period totals from every non-PENDING calculation."""
        rows = [
            c
            for c in self.calculations_for(period.id)
            if c.status != CalculationStatus.PENDING.value
        ]
        period.total_gross = sum((c.gross_income for c in rows), Decimal("0"))
        period.total_deductions = sum((c.total_deductions for c in rows), Decimal("0"))
        period.total_net = sum((c.net_pay for c in rows), Decimal("0"))
        period.total_employer_contributions = sum(
            (c.employer_total for c in rows), Decimal("0")
        )
        self.session.flush()

    def get_summary(self, period_id: str | UUID) -> PeriodSummary:
        """Totals, per-status counts and one line per employee."""
        period = self.get_model(period_id)
        calculations = self.calculations_for(period.id)
        computed = [c for c in calculations if c.status != CalculationStatus.PENDING.value]
        return PeriodSummary(
            period=period.to_dto(),
            employee_count=len(calculations),
            total_gross=sum((c.gross_income for c in computed), Decimal("0")),
            total_deductions=sum((c.total_deductions for c in computed), Decimal("0")),
            total_net=sum((c.net_pay for c in computed), Decimal("0")),
            total_employer_contributions=sum(
                (c.employer_total for c in computed), Decimal("0")
            ),
            status_counts=dict(Counter(c.status for c in calculations)),
            lines=tuple(c.to_dto() for c in calculations),
        )


def coerce_uuid(value: str | UUID) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))
