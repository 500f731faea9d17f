"""
Income Aggregator -- gross income breakdown for one employee and period.

Components:
    regular salary   daily_salary * worked_days
    overtime         hourly = daily / 8; double-rate hours up to 9 per week,
                     the rest at triple rate
    vacation premium daily_salary * vacation_days_taken * 0.25
    aguinaldo        15 * daily_salary / periods_per_year (52, 26, 12)
    extras           bonus, commission and other income, summed as given

Worked days are calendar days minus unpaid absences minus non-working
holidays inside the period, floored at zero.

Overtime beyond the legal limits is paid, never rejected.  An
OVERTIME_EXCEEDS_LEGAL_LIMIT warning is attached when double-rate hours
exceed 9 per week or overtime averages more than 3 hours per worked day.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable

from payroll_config.schema import TaxTableSet
from payroll_engines.rounding import ZERO, to_cents
from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.dtos import (
    OVERTIME_EXCEEDS_LEGAL_LIMIT,
    IncomeBreakdown,
    PayrollWarning,
    PeriodWindow,
)
from payroll_kernel.domain.values import Employee, IncidenceAggregate
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.income")

HOURS_PER_DAY = Decimal("8")
DAYS_PER_WEEK = Decimal("7")
WEEKLY_DOUBLE_RATE_HOURS = Decimal("9")
MAX_DAILY_OVERTIME_HOURS = Decimal("3")
DOUBLE_RATE = Decimal("2")
TRIPLE_RATE = Decimal("3")
VACATION_PREMIUM_RATE = Decimal("0.25")
AGUINALDO_DAYS = Decimal("15")


def holidays_in_period(window: PeriodWindow, holidays: Iterable[date]) -> int:
    return len({day for day in holidays if window.contains(day)})


def worked_days_for(
    window: PeriodWindow, unpaid_absence_days: Decimal, holiday_count: int
) -> Decimal:
    worked = Decimal(window.calendar_days) - unpaid_absence_days - Decimal(holiday_count)
    return max(ZERO, worked)


def split_overtime(
    window: PeriodWindow, incidences: IncidenceAggregate
) -> tuple[Decimal, Decimal, Decimal]:
    """
    Return (double_hours, triple_hours, double_rate_allowance).

    Untiered hours fill whatever double-rate allowance the pre-classified
    double hours left; the remainder pays triple.
    """
    allowance = WEEKLY_DOUBLE_RATE_HOURS * Decimal(window.calendar_days) / DAYS_PER_WEEK
    remaining = max(ZERO, allowance - incidences.overtime_double_hours)
    single_at_double = min(incidences.overtime_single_hours, remaining)
    single_at_triple = incidences.overtime_single_hours - single_at_double
    double_hours = incidences.overtime_double_hours + single_at_double
    triple_hours = incidences.overtime_triple_hours + single_at_triple
    return double_hours, triple_hours, allowance


def _overtime_warnings(
    incidences: IncidenceAggregate,
    allowance: Decimal,
    worked_days: Decimal,
) -> list[PayrollWarning]:
    warnings: list[PayrollWarning] = []
    double_eligible = incidences.overtime_double_hours + incidences.overtime_single_hours
    if double_eligible > allowance:
        warnings.append(
            PayrollWarning(
                code=OVERTIME_EXCEEDS_LEGAL_LIMIT,
                message=(
                    f"{double_eligible} double-rate-eligible overtime hours exceed "
                    f"the {to_cents(allowance)} hour allowance (9 per week)"
                ),
                details=(
                    ("limit", "weekly_double_rate_hours"),
                    ("hours", str(double_eligible)),
                    ("allowance", str(to_cents(allowance))),
                ),
            )
        )

    total_hours = (
        incidences.overtime_single_hours
        + incidences.overtime_double_hours
        + incidences.overtime_triple_hours
    )
    if total_hours > ZERO:
        exceeded = (
            worked_days <= ZERO
            or total_hours / worked_days > MAX_DAILY_OVERTIME_HOURS
        )
        if exceeded:
            average = to_cents(total_hours / worked_days) if worked_days > ZERO else total_hours
            warnings.append(
                PayrollWarning(
                    code=OVERTIME_EXCEEDS_LEGAL_LIMIT,
                    message=(
                        f"overtime averages {average} hours per worked day "
                        f"(limit {MAX_DAILY_OVERTIME_HOURS})"
                    ),
                    details=(
                        ("limit", "daily_average_hours"),
                        ("hours", str(total_hours)),
                        ("worked_days", str(worked_days)),
                    ),
                )
            )
    return warnings


@traced_engine("income", "1.0", fingerprint_fields=("employee", "incidences", "window"))
def aggregate_income(
    *,
    employee: Employee,
    incidences: IncidenceAggregate,
    window: PeriodWindow,
    tables: TaxTableSet,
    holidays: Iterable[date] = (),
) -> IncomeBreakdown:
    """
    Build the gross-income breakdown.

    ``employee.daily_salary`` must be present; the calculator checks
    completeness before calling.
    """
    daily = employee.daily_salary
    if daily is None:
        raise ValueError(f"employee {employee.employee_id} has no daily salary")

    holiday_count = holidays_in_period(window, holidays)
    worked_days = worked_days_for(window, incidences.unpaid_absence_days, holiday_count)

    regular_salary = to_cents(daily * worked_days)

    hourly_rate = daily / HOURS_PER_DAY
    double_hours, triple_hours, allowance = split_overtime(window, incidences)
    double_amount = to_cents(double_hours * hourly_rate * DOUBLE_RATE)
    triple_amount = to_cents(triple_hours * hourly_rate * TRIPLE_RATE)

    vacation_premium = to_cents(daily * incidences.vacation_days_taken * VACATION_PREMIUM_RATE)
    aguinaldo = to_cents(
        AGUINALDO_DAYS * daily / Decimal(tables.strategy.periods_per_year)
    )

    bonus = to_cents(incidences.bonus_amount)
    commission = to_cents(incidences.commission_amount)
    other_income = to_cents(incidences.other_income_amount)

    gross_income = (
        regular_salary
        + double_amount
        + triple_amount
        + vacation_premium
        + aguinaldo
        + bonus
        + commission
        + other_income
    )

    warnings = _overtime_warnings(incidences, allowance, worked_days)
    if warnings:
        logger.warning(
            "overtime_exceeds_legal_limit",
            extra={
                "employee_id": employee.employee_id,
                "warning_count": len(warnings),
                "double_hours": str(double_hours),
                "triple_hours": str(triple_hours),
            },
        )

    return IncomeBreakdown(
        calendar_days=window.calendar_days,
        worked_days=worked_days,
        holidays_in_period=holiday_count,
        hourly_rate=to_cents(hourly_rate),
        regular_salary=regular_salary,
        overtime_double_hours=double_hours,
        overtime_triple_hours=triple_hours,
        overtime_double_amount=double_amount,
        overtime_triple_amount=triple_amount,
        vacation_premium=vacation_premium,
        aguinaldo=aguinaldo,
        bonus=bonus,
        commission=commission,
        other_income=other_income,
        gross_income=gross_income,
        warnings=tuple(warnings),
    )
