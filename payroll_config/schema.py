"""
Tax table schema.

Defines the typed, immutable form of the versioned payroll tables. YAML
files under ``payroll_config/tables/`` are parsed into these types by the
loader, validated by the validator, and handed to the engines as a single
``TaxTableSet`` per (year, period type).

Key distinction:
  tax_tables_<year>.yaml = source artifact (human-authored, versioned)
  TaxTableSet            = runtime artifact (validated, frozen, shared by
                           every worker in a batch)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from payroll_kernel.domain.values import PeriodType

CENT = Decimal("0.01")


# ---------------------------------------------------------------------------
# Brackets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IncomeTaxBracket:
    """One row of the ISR table. ``upper_limit`` None means unbounded."""

    lower_limit: Decimal
    upper_limit: Decimal | None
    fixed_fee: Decimal
    rate_percent: Decimal

    def contains(self, income: Decimal) -> bool:
        if income < self.lower_limit:
            return False
        return self.upper_limit is None or income <= self.upper_limit


@dataclass(frozen=True)
class SubsidyBracket:
    """One row of the employment subsidy table."""

    lower_limit: Decimal
    upper_limit: Decimal | None
    subsidy_amount: Decimal

    def contains(self, income: Decimal) -> bool:
        if income < self.lower_limit:
            return False
        return self.upper_limit is None or income <= self.upper_limit


# ---------------------------------------------------------------------------
# Contribution rates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContributionComponent:
    """A social-security branch split into employee and employer shares."""

    name: str
    employee_rate_percent: Decimal
    employer_rate_percent: Decimal


@dataclass(frozen=True)
class ContributionRates:
    """Social-security, housing-fund and retirement-savings percentages."""

    imss_components: tuple[ContributionComponent, ...]
    housing_employee_rate_percent: Decimal
    housing_employer_rate_percent: Decimal
    retirement_savings_employer_rate_percent: Decimal

    @property
    def imss_employee_rate_percent(self) -> Decimal:
        return sum((c.employee_rate_percent for c in self.imss_components), Decimal("0"))

    @property
    def imss_employer_rate_percent(self) -> Decimal:
        return sum((c.employer_rate_percent for c in self.imss_components), Decimal("0"))


# ---------------------------------------------------------------------------
# Official reference values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OfficialValues:
    """UMA, minimum wage and the SDI cap multiplier for one year."""

    uma_daily: Decimal
    uma_monthly: Decimal
    uma_annual: Decimal
    minimum_wage_general: Decimal
    minimum_wage_border: Decimal
    sdi_cap_multiplier: Decimal

    @property
    def sdi_cap(self) -> Decimal:
        return (self.uma_daily * self.sdi_cap_multiplier).quantize(CENT)


# ---------------------------------------------------------------------------
# Period-type strategy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PeriodTypeStrategy:
    """
    How a period type maps onto the bracket tables.

    ``input_scale`` multiplies taxable income before lookup and
    ``output_scale`` multiplies tax, subsidy and net tax afterwards.
    """

    period_type: PeriodType
    table_key: str
    input_scale: Decimal
    output_scale: Decimal
    periods_per_year: int
    nominal_days: int


PERIOD_STRATEGIES: dict[PeriodType, PeriodTypeStrategy] = {
    # Weekly reuses the biweekly brackets: double the income, halve the result.
    PeriodType.WEEKLY: PeriodTypeStrategy(
        period_type=PeriodType.WEEKLY,
        table_key="biweekly",
        input_scale=Decimal("2"),
        output_scale=Decimal("0.5"),
        periods_per_year=52,
        nominal_days=7,
    ),
    PeriodType.BIWEEKLY: PeriodTypeStrategy(
        period_type=PeriodType.BIWEEKLY,
        table_key="biweekly",
        input_scale=Decimal("1"),
        output_scale=Decimal("1"),
        periods_per_year=26,
        nominal_days=15,
    ),
    PeriodType.MONTHLY: PeriodTypeStrategy(
        period_type=PeriodType.MONTHLY,
        table_key="monthly",
        input_scale=Decimal("1"),
        output_scale=Decimal("1"),
        periods_per_year=12,
        nominal_days=30,
    ),
}


def strategy_for(period_type: PeriodType | str) -> PeriodTypeStrategy:
    return PERIOD_STRATEGIES[PeriodType(period_type)]


# ---------------------------------------------------------------------------
# The set handed to the engines
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaxTableSet:
    """Everything the engines need for one (year, period type)."""

    year: int
    period_type: PeriodType
    strategy: PeriodTypeStrategy
    isr_brackets: tuple[IncomeTaxBracket, ...]
    subsidy_brackets: tuple[SubsidyBracket, ...]
    contributions: ContributionRates
    official_values: OfficialValues
    checksum: str = ""
    source: str = ""
