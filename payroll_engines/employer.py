"""
Employer Contribution Engine.

Same contribution base as the employee side, multiplied by the employer
share of every social-security branch plus the employer's work-risk rate,
and by the housing-fund and retirement-savings employer rates.  The result
is tracked on the calculation record and never reduces net pay.
"""

from __future__ import annotations

from decimal import Decimal

from payroll_config.employer import MAX_WORK_RISK_RATE, MIN_WORK_RISK_RATE
from payroll_config.schema import TaxTableSet
from payroll_engines.deductions import contribution_base
from payroll_engines.rounding import percent_of, to_cents
from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.dtos import EmployerContributions
from payroll_kernel.exceptions import InvalidEmployerConfigError


@traced_engine(
    "employer_contributions",
    "1.0",
    fingerprint_fields=("sdi", "worked_days", "work_risk_rate_percent"),
)
def compute_employer_contributions(
    *,
    sdi: Decimal,
    worked_days: Decimal,
    tables: TaxTableSet,
    work_risk_rate_percent: Decimal,
    housing_employer_rate_percent: Decimal | None = None,
    retirement_savings_rate_percent: Decimal | None = None,
) -> EmployerContributions:
    """
    Compute employer-side contributions for one employee and period.

    Raises:
        InvalidEmployerConfigError: work-risk rate outside [0.5, 7.5] %.
    """
    if not MIN_WORK_RISK_RATE <= work_risk_rate_percent <= MAX_WORK_RISK_RATE:
        raise InvalidEmployerConfigError(
            "work_risk_rate_percent",
            str(work_risk_rate_percent),
            f"must be within [{MIN_WORK_RISK_RATE}, {MAX_WORK_RISK_RATE}]",
        )

    rates = tables.contributions
    base = contribution_base(sdi, worked_days, tables)

    housing_rate = (
        housing_employer_rate_percent
        if housing_employer_rate_percent is not None
        else rates.housing_employer_rate_percent
    )
    retirement_rate = (
        retirement_savings_rate_percent
        if retirement_savings_rate_percent is not None
        else rates.retirement_savings_employer_rate_percent
    )

    return EmployerContributions(
        contribution_base=to_cents(base),
        imss_employer=to_cents(percent_of(base, rates.imss_employer_rate_percent)),
        imss_employer_components=tuple(
            (c.name, to_cents(percent_of(base, c.employer_rate_percent)))
            for c in rates.imss_components
        ),
        work_risk=to_cents(percent_of(base, work_risk_rate_percent)),
        infonavit_employer=to_cents(percent_of(base, housing_rate)),
        retirement_savings=to_cents(percent_of(base, retirement_rate)),
    )
