"""
Bracket Engine -- ISR withholding and employment-subsidy lookups.

Responsibility
--------------
Evaluates the progressive ISR table (fixed fee plus marginal rate over the
bracket's lower limit) and the flat-amount subsidy table, then applies the
period-type strategy: weekly income is doubled, looked up in the biweekly
tables, and every output (tax, subsidy, net) is halved.

Invariants enforced
-------------------
* Exactly one bracket per income; income above every bound uses the last
  (open-ended) bracket.
* Subsidy is 0 when income falls outside every subsidy band.
* ``net_tax = max(0, tax - subsidy)``: no refund through payroll.
* Results are exact (unrounded) Decimals so that the weekly law
  ``weekly(x) == biweekly(2x) * 0.5`` holds without rounding noise;
  callers round to cents when building a DeductionBreakdown.

Failure modes
-------------
* Negative taxable income -> ``ValueError``.
* Empty bracket table -> ``ValueError`` (tables are validated at load, so
  this only happens with hand-built TaxTableSets).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from payroll_config.schema import (
    IncomeTaxBracket,
    PeriodTypeStrategy,
    SubsidyBracket,
    TaxTableSet,
)
from payroll_engines.rounding import HUNDRED, ZERO, to_cents
from payroll_engines.tracer import traced_engine


@dataclass(frozen=True)
class IsrResult:
    """ISR for one period, already scaled back to the period's own frequency."""

    taxable_income: Decimal
    lookup_income: Decimal
    bracket: IncomeTaxBracket
    tax: Decimal
    subsidy: Decimal
    net_tax: Decimal


def find_income_tax_bracket(
    brackets: Sequence[IncomeTaxBracket], income: Decimal
) -> IncomeTaxBracket:
    """Return the bracket with ``lower_limit <= income <= upper_limit``."""
    if not brackets:
        raise ValueError("income tax table is empty")
    for bracket in brackets:
        if bracket.contains(income):
            return bracket
    if income >= brackets[-1].lower_limit:
        return brackets[-1]
    raise ValueError(f"income {income} is below the first bracket")


def bracket_tax(bracket: IncomeTaxBracket, income: Decimal) -> Decimal:
    return bracket.fixed_fee + (income - bracket.lower_limit) * bracket.rate_percent / HUNDRED


def subsidy_for(brackets: Sequence[SubsidyBracket], income: Decimal) -> Decimal:
    for bracket in brackets:
        if bracket.contains(income):
            return bracket.subsidy_amount
    return ZERO


@traced_engine("isr", "1.0", fingerprint_fields=("taxable_income",))
def compute_isr(
    *,
    taxable_income: Decimal,
    tables: TaxTableSet,
    strategy: PeriodTypeStrategy | None = None,
) -> IsrResult:
    """
    Compute ISR tax, subsidy and net withholding for one period.

    ``strategy`` defaults to the one the tables were loaded for.
    """
    if taxable_income < ZERO:
        raise ValueError(f"taxable income cannot be negative: {taxable_income}")
    strategy = strategy or tables.strategy

    income = to_cents(taxable_income)
    lookup_income = income * strategy.input_scale

    bracket = find_income_tax_bracket(tables.isr_brackets, lookup_income)
    tax = bracket_tax(bracket, lookup_income) * strategy.output_scale
    subsidy = subsidy_for(tables.subsidy_brackets, lookup_income) * strategy.output_scale
    net_tax = max(ZERO, tax - subsidy)

    return IsrResult(
        taxable_income=income,
        lookup_income=lookup_income,
        bracket=bracket,
        tax=tax,
        subsidy=subsidy,
        net_tax=net_tax,
    )
