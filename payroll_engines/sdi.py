"""
SDI Engine -- Integrated Daily Salary (salario diario integrado).

The integration factor folds the statutory year-end bonus (15 days) and
the vacation premium (25 % of the seniority vacation entitlement) into the
daily salary:

    factor = (365 + 15 + vacation_days * 0.25) / 365
    sdi    = min(round(daily_salary * factor, 2), cap_multiplier * UMA_daily)

The cap is applied last, to the salary, never to the factor.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from payroll_config.schema import TaxTableSet
from payroll_engines.rounding import to_cents
from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.dtos import SDIResult

DAYS_PER_YEAR = Decimal("365")
AGUINALDO_MINIMUM_DAYS = Decimal("15")
VACATION_PREMIUM_RATE = Decimal("0.25")

# (minimum whole years of service, vacation days). Less than one year
# earns the first-year entitlement.
VACATION_DAYS_BY_SENIORITY: tuple[tuple[int, int], ...] = (
    (0, 12),
    (1, 12),
    (2, 14),
    (3, 16),
    (4, 18),
    (5, 20),
    (10, 22),
    (15, 24),
    (20, 26),
    (25, 28),
    (30, 30),
)


def years_of_service(hire_date: date, as_of_date: date) -> int:
    """Whole years between hire date and as-of date."""
    if as_of_date < hire_date:
        raise ValueError(f"as_of_date {as_of_date} precedes hire_date {hire_date}")
    years = as_of_date.year - hire_date.year
    if (as_of_date.month, as_of_date.day) < (hire_date.month, hire_date.day):
        years -= 1
    return years


def vacation_days_for(years: int) -> int:
    days = VACATION_DAYS_BY_SENIORITY[0][1]
    for min_years, entitlement in VACATION_DAYS_BY_SENIORITY:
        if years >= min_years:
            days = entitlement
        else:
            break
    return days


def integration_factor(vacation_days: int) -> Decimal:
    return (
        DAYS_PER_YEAR + AGUINALDO_MINIMUM_DAYS + Decimal(vacation_days) * VACATION_PREMIUM_RATE
    ) / DAYS_PER_YEAR


@traced_engine("sdi", "1.0", fingerprint_fields=("daily_salary", "hire_date", "as_of_date"))
def compute_sdi(
    *,
    daily_salary: Decimal,
    hire_date: date,
    as_of_date: date,
    tables: TaxTableSet,
) -> SDIResult:
    """Compute the capped SDI for an employee as of a date."""
    years = years_of_service(hire_date, as_of_date)
    vacation_days = vacation_days_for(years)
    factor = integration_factor(vacation_days)

    uncapped = to_cents(daily_salary * factor)
    cap = tables.official_values.sdi_cap
    return SDIResult(
        sdi=min(uncapped, cap),
        uncapped_sdi=uncapped,
        integration_factor=factor,
        years_of_service=years,
        vacation_days=vacation_days,
        cap=cap,
    )
