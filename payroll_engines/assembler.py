"""
Net Pay Assembler & Validator.

Responsibility
--------------
Builds the immutable ``PayrollCalculation`` in one step from fully computed
sub-results, and ``PayrollCalculator`` runs the whole per-employee pipeline
(SDI -> income -> deductions -> employer contributions -> assembly) against
one TaxTableSet and one EmployerConfig.

Invariants enforced
-------------------
* ``total_deductions = statutory + other``;
  ``net_pay = gross_income - total_deductions``.
* Negative net pay sets REQUIRES_REVIEW with a NEGATIVE_NET_PAY reason.
  The value is kept as computed, never clamped to zero.
* Overtime and below-minimum-wage warnings travel on the record; nothing
  here raises for them.  The minimum wage is the one of the employer's zone.

Failure modes
-------------
* ``EmployeeDataIncompleteError`` when the employee lacks a positive daily
  salary or a hire date, or was hired after the period ended.  Per
  employee: a batch records it and moves on.
"""

from __future__ import annotations

import time
from datetime import date
from typing import Iterable

from payroll_config.employer import EmployerConfig
from payroll_config.schema import TaxTableSet
from payroll_engines.deductions import compute_deductions
from payroll_engines.employer import compute_employer_contributions
from payroll_engines.income import aggregate_income
from payroll_engines.rounding import ZERO
from payroll_engines.sdi import compute_sdi
from payroll_kernel.domain.dtos import (
    BELOW_MINIMUM_WAGE,
    NEGATIVE_NET_PAY,
    DeductionBreakdown,
    EmployerContributions,
    IncomeBreakdown,
    PayrollCalculation,
    PayrollWarning,
    PeriodWindow,
    ReviewReason,
    SDIResult,
)
from payroll_kernel.domain.values import (
    CalculationStatus,
    Employee,
    IncidenceAggregate,
)
from payroll_kernel.exceptions import EmployeeDataIncompleteError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.assembler")


def assemble(
    *,
    employee_id: str,
    period_id: str,
    table_year: int,
    sdi: SDIResult,
    income: IncomeBreakdown,
    deductions: DeductionBreakdown,
    employer: EmployerContributions,
    warnings: tuple[PayrollWarning, ...] = (),
) -> PayrollCalculation:
    """Assemble the final record and apply the review-flagging rule."""
    gross_income = income.gross_income
    total_deductions = deductions.total_deductions
    net_pay = gross_income - total_deductions

    review_reason = None
    status = CalculationStatus.CALCULATED
    if net_pay < ZERO:
        status = CalculationStatus.REQUIRES_REVIEW
        review_reason = ReviewReason(
            code=NEGATIVE_NET_PAY,
            gross_income=gross_income,
            total_deductions=total_deductions,
            net_pay=net_pay,
        )
        logger.warning(
            "negative_net_pay_flagged",
            extra={
                "employee_id": employee_id,
                "period_id": period_id,
                "gross_income": gross_income,
                "total_deductions": total_deductions,
                "net_pay": net_pay,
            },
        )

    return PayrollCalculation(
        employee_id=employee_id,
        period_id=period_id,
        table_year=table_year,
        sdi=sdi,
        income=income,
        deductions=deductions,
        employer=employer,
        gross_income=gross_income,
        total_deductions=total_deductions,
        net_pay=net_pay,
        status=status,
        warnings=income.warnings + tuple(warnings),
        review_reason=review_reason,
    )


class PayrollCalculator:
    """
    Per-employee payroll pipeline bound to one TaxTableSet.

    Pure: no I/O, no clock.  Safe to share across worker threads because
    both the tables and the employer config are frozen.

        calculator = PayrollCalculator(tables, EmployerConfig.with_defaults())
        result = calculator.calculate(employee, incidences, period_id, window)
    """

    def __init__(self, tables: TaxTableSet, employer_config: EmployerConfig | None = None):
        self._tables = tables
        self._employer = employer_config or EmployerConfig.with_defaults()

    @property
    def tables(self) -> TaxTableSet:
        return self._tables

    @property
    def employer_config(self) -> EmployerConfig:
        return self._employer

    def calculate(
        self,
        employee: Employee,
        incidences: IncidenceAggregate | None,
        period_id: str,
        window: PeriodWindow,
        holidays: Iterable[date] = (),
    ) -> PayrollCalculation:
        t0 = time.monotonic()
        self._check_complete(employee, window)
        incidences = incidences or IncidenceAggregate.empty(employee.employee_id)

        sdi = compute_sdi(
            daily_salary=employee.daily_salary,
            hire_date=employee.hire_date,
            as_of_date=window.end_date,
            tables=self._tables,
        )
        income = aggregate_income(
            employee=employee,
            incidences=incidences,
            window=window,
            tables=self._tables,
            holidays=tuple(holidays),
        )
        deductions = compute_deductions(
            gross_taxable_income=income.gross_income,
            sdi=sdi.sdi,
            worked_days=income.worked_days,
            period_type=window.period_type,
            tables=self._tables,
            housing_rate_percent=self._employer.housing_employee_rate_percent,
            housing_credit=employee.housing_credit,
            other_deductions=incidences.other_deduction_amount,
        )
        employer = compute_employer_contributions(
            sdi=sdi.sdi,
            worked_days=income.worked_days,
            tables=self._tables,
            work_risk_rate_percent=self._employer.work_risk_rate_percent,
            housing_employer_rate_percent=self._employer.housing_employer_rate_percent,
            retirement_savings_rate_percent=self._employer.retirement_savings_rate_percent,
        )
        result = assemble(
            employee_id=employee.employee_id,
            period_id=period_id,
            table_year=self._tables.year,
            sdi=sdi,
            income=income,
            deductions=deductions,
            employer=employer,
            warnings=self._minimum_wage_warnings(employee),
        )

        logger.info(
            "payroll_calculated",
            extra={
                "employee_id": employee.employee_id,
                "period_id": period_id,
                "status": result.status.value,
                "gross_income": result.gross_income,
                "net_pay": result.net_pay,
                "warning_count": len(result.warnings),
                "warnings": result.warnings,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
        )
        return result

    @staticmethod
    def _check_complete(employee: Employee, window: PeriodWindow) -> None:
        missing = employee.missing_fields()
        if not missing and employee.hire_date > window.end_date:
            missing = ["hire_date"]
        if missing:
            logger.warning(
                "employee_data_incomplete",
                extra={"employee_id": employee.employee_id, "missing_fields": missing},
            )
            raise EmployeeDataIncompleteError(employee.employee_id, missing)

    def _minimum_wage_warnings(self, employee: Employee) -> tuple[PayrollWarning, ...]:
        minimum = self._employer.minimum_wage(self._tables.official_values)
        if employee.daily_salary >= minimum:
            return ()
        return (
            PayrollWarning(
                code=BELOW_MINIMUM_WAGE,
                message=(
                    f"daily salary {employee.daily_salary} is below the "
                    f"{self._employer.zone} minimum wage {minimum}"
                ),
                details=(
                    ("zone", self._employer.zone),
                    ("minimum_wage", str(minimum)),
                    ("daily_salary", str(employee.daily_salary)),
                ),
            ),
        )
