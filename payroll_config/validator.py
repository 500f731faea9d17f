"""
Tax Table Validator (``payroll_config.validator``).

Responsibility
--------------
Checks parsed tables at load time, never lazily during lookup.

Invariants enforced
-------------------
* Brackets are ordered, contiguous at cent granularity
  (``next.lower_limit == previous.upper_limit + 0.01``) and non-overlapping.
* Each bracket's lower limit does not exceed its upper limit.
* Every rate is within [0, 100].
* The ISR table starts at 0.00 and its last bracket is unbounded; only the
  last bracket may be unbounded.
* Subsidy amounts and fixed fees are non-negative.
* Official values (UMA, minimum wage, cap multiplier) are positive.

Failure modes
-------------
* ``TableValidationResult.errors`` non-empty -> the repository raises
  ``InvalidBracketConfigurationError`` for the first error.
* Warnings (e.g. a fixed fee that would make tax jump downward at a
  boundary) are logged but do not block loading.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Sequence

from payroll_config.schema import (
    CENT,
    ContributionRates,
    IncomeTaxBracket,
    OfficialValues,
    SubsidyBracket,
)

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class TableIssue:
    table: str
    row: int | None
    reason: str

    def __str__(self) -> str:
        where = f"{self.table}[{self.row}]" if self.row is not None else self.table
        return f"{where}: {self.reason}"


@dataclass
class TableValidationResult:
    """
    Result of table validation.

    ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[TableIssue] = field(default_factory=list)
    warnings: list[TableIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, table: str, row: int | None, reason: str) -> None:
        self.errors.append(TableIssue(table, row, reason))

    def add_warning(self, table: str, row: int | None, reason: str) -> None:
        self.warnings.append(TableIssue(table, row, reason))


def _check_rate(result: TableValidationResult, table: str, row: int | None, rate: Decimal) -> None:
    if rate < _ZERO or rate > _HUNDRED:
        result.add_error(table, row, f"rate {rate} outside [0, 100]")


def _check_contiguity(
    result: TableValidationResult,
    table: str,
    rows: Sequence[IncomeTaxBracket | SubsidyBracket],
) -> None:
    for index, bracket in enumerate(rows):
        is_last = index == len(rows) - 1
        if bracket.upper_limit is None:
            if not is_last:
                result.add_error(table, index, "only the last bracket may be unbounded")
        elif bracket.upper_limit < bracket.lower_limit:
            result.add_error(
                table,
                index,
                f"upper_limit {bracket.upper_limit} below lower_limit {bracket.lower_limit}",
            )
        if index == 0:
            continue
        previous = rows[index - 1]
        if previous.upper_limit is None:
            continue
        expected = previous.upper_limit + CENT
        if bracket.lower_limit < expected:
            result.add_error(
                table,
                index,
                f"lower_limit {bracket.lower_limit} overlaps previous upper_limit "
                f"{previous.upper_limit}",
            )
        elif bracket.lower_limit > expected:
            result.add_error(
                table,
                index,
                f"gap between {previous.upper_limit} and {bracket.lower_limit}",
            )


def validate_isr_brackets(
    table: str, brackets: Sequence[IncomeTaxBracket]
) -> TableValidationResult:
    result = TableValidationResult()
    if not brackets:
        result.add_error(table, None, "table has no brackets")
        return result

    if brackets[0].lower_limit != _ZERO:
        result.add_error(table, 0, f"first bracket must start at 0, got {brackets[0].lower_limit}")
    if brackets[-1].upper_limit is not None:
        result.add_error(table, len(brackets) - 1, "last bracket must be unbounded")

    for index, bracket in enumerate(brackets):
        _check_rate(result, table, index, bracket.rate_percent)
        if bracket.fixed_fee < _ZERO:
            result.add_error(table, index, f"negative fixed_fee {bracket.fixed_fee}")

    _check_contiguity(result, table, brackets)

    if result.is_valid:
        for index in range(1, len(brackets)):
            previous, current = brackets[index - 1], brackets[index]
            tax_at_upper = previous.fixed_fee + (
                previous.upper_limit - previous.lower_limit
            ) * previous.rate_percent / _HUNDRED
            if current.fixed_fee < tax_at_upper.quantize(CENT):
                result.add_warning(
                    table,
                    index,
                    f"fixed_fee {current.fixed_fee} below tax {tax_at_upper} "
                    "at previous upper limit",
                )
    return result


def validate_subsidy_brackets(
    table: str, brackets: Sequence[SubsidyBracket]
) -> TableValidationResult:
    result = TableValidationResult()
    for index, bracket in enumerate(brackets):
        if bracket.lower_limit < _ZERO:
            result.add_error(table, index, f"negative lower_limit {bracket.lower_limit}")
        if bracket.subsidy_amount < _ZERO:
            result.add_error(table, index, f"negative subsidy_amount {bracket.subsidy_amount}")
    _check_contiguity(result, table, brackets)
    return result


def validate_contributions(table: str, rates: ContributionRates) -> TableValidationResult:
    result = TableValidationResult()
    if not rates.imss_components:
        result.add_error(table, None, "no social-security components")
    seen: set[str] = set()
    for index, component in enumerate(rates.imss_components):
        if component.name in seen:
            result.add_error(table, index, f"duplicate component {component.name}")
        seen.add(component.name)
        _check_rate(result, table, index, component.employee_rate_percent)
        _check_rate(result, table, index, component.employer_rate_percent)
    _check_rate(result, f"{table}.housing", None, rates.housing_employee_rate_percent)
    _check_rate(result, f"{table}.housing", None, rates.housing_employer_rate_percent)
    _check_rate(
        result,
        f"{table}.retirement_savings",
        None,
        rates.retirement_savings_employer_rate_percent,
    )
    return result


def validate_official_values(table: str, values: OfficialValues) -> TableValidationResult:
    result = TableValidationResult()
    for name in (
        "uma_daily",
        "uma_monthly",
        "uma_annual",
        "minimum_wage_general",
        "minimum_wage_border",
        "sdi_cap_multiplier",
    ):
        value = getattr(values, name)
        if value <= _ZERO:
            result.add_error(table, None, f"{name} must be positive, got {value}")
    return result
