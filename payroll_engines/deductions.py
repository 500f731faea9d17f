"""
Statutory Deduction Engine -- ISR, IMSS (employee share), INFONAVIT (employee share).

Responsibility
--------------
Turns gross taxable income and the SDI into the employee's statutory
deductions for one period:

    ISR        strategy-scaled bracket lookup minus subsidy, floored at 0
    IMSS       base = min(sdi, cap) * worked_days; base * sum(employee %) / 100
    INFONAVIT  base * housing % / 100 (employer override, else table default),
               or the employee's housing credit when one is active:
                 percentage    base * value / 100
                 fixed_amount  value per period
                 uma_multiple  UMA_daily * value * worked_days

Invariants enforced
-------------------
* ISR withheld is never negative.
* The contribution base never exceeds cap * worked_days.
* All amounts on the returned breakdown are rounded to cents.

Failure modes
-------------
* Negative taxable income or worked days -> ``ValueError``.
* ``period_type`` whose strategy points at a different table than the
  TaxTableSet was loaded for -> ``ValueError``.
"""

from __future__ import annotations

from decimal import Decimal

from payroll_config.schema import TaxTableSet, strategy_for
from payroll_engines.brackets import compute_isr
from payroll_engines.rounding import ZERO, percent_of, to_cents
from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.dtos import DeductionBreakdown
from payroll_kernel.domain.values import HousingCredit, HousingCreditType, PeriodType


def contribution_base(sdi: Decimal, worked_days: Decimal, tables: TaxTableSet) -> Decimal:
    """Daily SDI, capped, times worked days."""
    if worked_days < ZERO:
        raise ValueError(f"worked days cannot be negative: {worked_days}")
    return min(sdi, tables.official_values.sdi_cap) * worked_days


def housing_credit_amount(
    credit: HousingCredit,
    base: Decimal,
    worked_days: Decimal,
    tables: TaxTableSet,
) -> Decimal:
    if credit.credit_type == HousingCreditType.PERCENTAGE:
        return percent_of(base, credit.value)
    if credit.credit_type == HousingCreditType.FIXED_AMOUNT:
        return credit.value
    return tables.official_values.uma_daily * credit.value * worked_days


@traced_engine(
    "deductions",
    "1.0",
    fingerprint_fields=("gross_taxable_income", "sdi", "worked_days", "period_type"),
)
def compute_deductions(
    *,
    gross_taxable_income: Decimal,
    sdi: Decimal,
    worked_days: Decimal,
    period_type: PeriodType | str,
    tables: TaxTableSet,
    housing_rate_percent: Decimal | None = None,
    housing_credit: HousingCredit | None = None,
    other_deductions: Decimal = ZERO,
) -> DeductionBreakdown:
    """Compute the employee's statutory deductions for one period."""
    strategy = strategy_for(period_type)
    if strategy.table_key != tables.strategy.table_key:
        raise ValueError(
            f"period type {strategy.period_type.value} needs the "
            f"{strategy.table_key} table, got {tables.strategy.table_key}"
        )

    isr = compute_isr(taxable_income=gross_taxable_income, tables=tables, strategy=strategy)

    base = contribution_base(sdi, worked_days, tables)
    components = tables.contributions.imss_components
    imss_employee = to_cents(
        percent_of(base, tables.contributions.imss_employee_rate_percent)
    )
    imss_detail = tuple(
        (c.name, to_cents(percent_of(base, c.employee_rate_percent)))
        for c in components
    )

    if housing_credit is not None:
        infonavit = housing_credit_amount(housing_credit, base, worked_days, tables)
    else:
        rate = (
            housing_rate_percent
            if housing_rate_percent is not None
            else tables.contributions.housing_employee_rate_percent
        )
        infonavit = percent_of(base, rate)

    return DeductionBreakdown(
        taxable_income=isr.taxable_income,
        isr_tax=to_cents(isr.tax),
        isr_subsidy=to_cents(isr.subsidy),
        isr_withheld=to_cents(isr.net_tax),
        contribution_base=to_cents(base),
        imss_employee=imss_employee,
        imss_employee_components=imss_detail,
        infonavit_employee=to_cents(infonavit),
        other_deductions=to_cents(other_deductions),
    )
