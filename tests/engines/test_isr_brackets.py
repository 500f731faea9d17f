"""
Tests for the ISR bracket engine.

Covers:
- Bracket lookup, including boundaries and the open-ended top bracket
- Fixed fee plus marginal rate over the lower limit
- Employment subsidy lookup and the zero floor on net withholding
- Weekly periods evaluated through the biweekly tables
- Monthly tables
"""

from decimal import Decimal

import pytest

from payroll_config.schema import strategy_for
from payroll_engines.brackets import (
    bracket_tax,
    compute_isr,
    find_income_tax_bracket,
    subsidy_for,
)
from payroll_engines.rounding import to_cents


class TestBracketLookup:
    """Tests for find_income_tax_bracket."""

    def test_scenario_income_lands_in_second_bracket(self, biweekly_tables):
        """1000.00 biweekly falls in [312.91, 2653.48]."""
        bracket = find_income_tax_bracket(biweekly_tables.isr_brackets, Decimal("1000.00"))

        assert bracket.lower_limit == Decimal("312.91")
        assert bracket.upper_limit == Decimal("2653.48")
        assert bracket.fixed_fee == Decimal("6.01")
        assert bracket.rate_percent == Decimal("6.40")

    def test_upper_limit_is_inclusive(self, biweekly_tables):
        """An income equal to a bracket's upper limit stays in that bracket."""
        bracket = find_income_tax_bracket(biweekly_tables.isr_brackets, Decimal("312.90"))
        assert bracket.lower_limit == Decimal("0.00")

    def test_next_cent_moves_to_next_bracket(self, biweekly_tables):
        bracket = find_income_tax_bracket(biweekly_tables.isr_brackets, Decimal("312.91"))
        assert bracket.lower_limit == Decimal("312.91")

    def test_income_above_every_bound_uses_last_bracket(self, biweekly_tables):
        """Very high incomes use the open-ended top bracket."""
        bracket = find_income_tax_bracket(biweekly_tables.isr_brackets, Decimal("9999999.99"))
        assert bracket.upper_limit is None
        assert bracket.rate_percent == Decimal("35.00")

    def test_empty_table_rejected(self):
        with pytest.raises(ValueError, match="empty"):
            find_income_tax_bracket((), Decimal("100"))


class TestBracketTax:
    """Tests for fixed fee + marginal rate."""

    def test_scenario_tax(self, biweekly_tables):
        """6.01 + (1000.00 - 312.91) * 6.40 % = 49.98376."""
        bracket = find_income_tax_bracket(biweekly_tables.isr_brackets, Decimal("1000.00"))
        assert bracket_tax(bracket, Decimal("1000.00")) == Decimal("49.98376")

    def test_tax_at_lower_limit_equals_fixed_fee(self, biweekly_tables):
        bracket = biweekly_tables.isr_brackets[5]
        assert bracket_tax(bracket, bracket.lower_limit) == bracket.fixed_fee

    def test_top_bracket(self, biweekly_tables):
        """49410.01 + (200000.00 - 157548.86) * 35 %."""
        result = compute_isr(taxable_income=Decimal("200000.00"), tables=biweekly_tables)
        assert result.tax == Decimal("64267.9090")


class TestSubsidy:
    """Tests for the employment subsidy table."""

    def test_scenario_subsidy(self, biweekly_tables):
        assert subsidy_for(biweekly_tables.subsidy_brackets, Decimal("1000.00")) == Decimal("200.70")

    def test_subsidy_band_boundaries(self, biweekly_tables):
        brackets = biweekly_tables.subsidy_brackets
        assert subsidy_for(brackets, Decimal("872.85")) == Decimal("200.85")
        assert subsidy_for(brackets, Decimal("872.86")) == Decimal("200.70")

    def test_no_subsidy_above_last_band(self, biweekly_tables):
        assert subsidy_for(biweekly_tables.subsidy_brackets, Decimal("3642.61")) == Decimal("0")

    def test_no_subsidy_for_zero_income(self, biweekly_tables):
        assert subsidy_for(biweekly_tables.subsidy_brackets, Decimal("0")) == Decimal("0")


class TestComputeIsr:
    """Tests for the full ISR computation."""

    def test_subsidy_exceeding_tax_floors_net_at_zero(self, biweekly_tables):
        """Biweekly 1000.00: tax ~49.98 < subsidy 200.70 -> nothing withheld."""
        result = compute_isr(taxable_income=Decimal("1000.00"), tables=biweekly_tables)

        assert to_cents(result.tax) == Decimal("49.98")
        assert result.subsidy == Decimal("200.70")
        assert result.net_tax == Decimal("0")

    def test_net_is_tax_minus_subsidy_when_positive(self, biweekly_tables):
        result = compute_isr(taxable_income=Decimal("3000.00"), tables=biweekly_tables)
        # 155.81 + (3000.00 - 2653.49) * 10.88 % = 193.510288; subsidy 145.35
        assert result.tax == Decimal("193.510288")
        assert result.subsidy == Decimal("145.35")
        assert result.net_tax == Decimal("48.160288")

    def test_income_without_subsidy(self, biweekly_tables):
        result = compute_isr(taxable_income=Decimal("5000.00"), tables=biweekly_tables)
        assert result.tax == Decimal("428.3612")
        assert result.subsidy == Decimal("0")
        assert result.net_tax == result.tax

    def test_zero_income(self, biweekly_tables):
        result = compute_isr(taxable_income=Decimal("0"), tables=biweekly_tables)
        assert result.tax == Decimal("0")
        assert result.net_tax == Decimal("0")

    def test_negative_income_rejected(self, biweekly_tables):
        with pytest.raises(ValueError, match="negative"):
            compute_isr(taxable_income=Decimal("-0.01"), tables=biweekly_tables)

    def test_income_rounded_to_cents_before_lookup(self, biweekly_tables):
        result = compute_isr(taxable_income=Decimal("312.904"), tables=biweekly_tables)
        assert result.taxable_income == Decimal("312.90")
        assert result.bracket.lower_limit == Decimal("0.00")


class TestWeeklyStrategy:
    """Weekly periods double the income, use the biweekly tables, halve the result."""

    def test_weekly_tables_share_biweekly_brackets(self, weekly_tables, biweekly_tables):
        assert weekly_tables.strategy.table_key == "biweekly"
        assert weekly_tables.isr_brackets == biweekly_tables.isr_brackets

    def test_weekly_500_is_half_of_biweekly_1000(self, weekly_tables, biweekly_tables):
        weekly = compute_isr(taxable_income=Decimal("500.00"), tables=weekly_tables)
        biweekly = compute_isr(taxable_income=Decimal("1000.00"), tables=biweekly_tables)

        assert weekly.lookup_income == Decimal("1000.00")
        assert weekly.tax == biweekly.tax * Decimal("0.5")
        assert weekly.subsidy == Decimal("100.350")
        assert weekly.net_tax == Decimal("0")

    def test_explicit_strategy_overrides_table_default(self, biweekly_tables):
        result = compute_isr(
            taxable_income=Decimal("2186.54"),
            tables=biweekly_tables,
            strategy=strategy_for("weekly"),
        )
        # lookup 4373.08: 155.81 + 1719.59 * 10.88 % = 342.901392, halved
        assert result.lookup_income == Decimal("4373.08")
        assert result.tax == Decimal("171.4506960")


class TestMonthlyTables:
    def test_monthly_bracket(self, monthly_tables):
        """786.56 + (10000.00 - 8601.51) * 17.92 %."""
        result = compute_isr(taxable_income=Decimal("10000.00"), tables=monthly_tables)
        assert result.bracket.lower_limit == Decimal("8601.51")
        assert result.tax == Decimal("1037.169408")
        assert result.net_tax == result.tax

    def test_monthly_subsidy(self, monthly_tables):
        result = compute_isr(taxable_income=Decimal("2000.00"), tables=monthly_tables)
        assert result.subsidy == Decimal("406.83")
        assert result.net_tax == Decimal("0")
