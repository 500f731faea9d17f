"""Tests for the integrated daily salary (SDI) engine."""

from datetime import date
from decimal import Decimal

import pytest

from payroll_engines.sdi import (
    compute_sdi,
    integration_factor,
    vacation_days_for,
    years_of_service,
)


class TestYearsOfService:
    def test_whole_years_only(self):
        assert years_of_service(date(2019, 1, 15), date(2025, 2, 15)) == 6

    def test_anniversary_not_yet_reached(self):
        assert years_of_service(date(2019, 3, 1), date(2025, 2, 28)) == 5

    def test_on_anniversary(self):
        assert years_of_service(date(2019, 3, 1), date(2025, 3, 1)) == 6

    def test_as_of_before_hire_rejected(self):
        with pytest.raises(ValueError, match="precedes"):
            years_of_service(date(2025, 3, 1), date(2025, 2, 1))


class TestVacationEntitlement:
    """Vacation days by seniority."""

    @pytest.mark.parametrize(
        "years,days",
        [
            (0, 12),
            (1, 12),
            (2, 14),
            (3, 16),
            (4, 18),
            (5, 20),
            (9, 20),
            (10, 22),
            (14, 22),
            (15, 24),
            (20, 26),
            (25, 28),
            (30, 30),
            (45, 30),
        ],
    )
    def test_table(self, years, days):
        assert vacation_days_for(years) == days

    def test_factor_for_twenty_vacation_days(self):
        """(365 + 15 + 20 * 0.25) / 365 = 385 / 365."""
        assert integration_factor(20) == Decimal("385") / Decimal("365")


class TestComputeSdi:
    """Tests for compute_sdi."""

    def test_scenario_500_daily_six_years(self, biweekly_tables):
        """500.00 daily, six years of service -> SDI 527.40."""
        result = compute_sdi(
            daily_salary=Decimal("500.00"),
            hire_date=date(2019, 1, 15),
            as_of_date=date(2025, 2, 15),
            tables=biweekly_tables,
        )

        assert result.sdi == Decimal("527.40")
        assert result.years_of_service == 6
        assert result.vacation_days == 20
        assert not result.capped

    def test_first_year_uses_twelve_days(self, biweekly_tables):
        """300.00 * 383 / 365 = 314.79."""
        result = compute_sdi(
            daily_salary=Decimal("300.00"),
            hire_date=date(2024, 6, 1),
            as_of_date=date(2025, 2, 9),
            tables=biweekly_tables,
        )
        assert result.years_of_service == 0
        assert result.vacation_days == 12
        assert result.sdi == Decimal("314.79")

    def test_cap_is_25_uma(self, biweekly_tables):
        assert biweekly_tables.official_values.sdi_cap == Decimal("2828.50")

    def test_high_salary_capped(self, biweekly_tables):
        """The cap applies to the integrated salary, not the factor."""
        result = compute_sdi(
            daily_salary=Decimal("5000.00"),
            hire_date=date(2010, 1, 1),
            as_of_date=date(2025, 2, 15),
            tables=biweekly_tables,
        )
        assert result.sdi == Decimal("2828.50")
        assert result.uncapped_sdi > result.sdi
        assert result.capped

    def test_salary_just_below_cap_not_capped(self, biweekly_tables):
        # 2600.00 * 385 / 365 = 2742.47
        result = compute_sdi(
            daily_salary=Decimal("2600.00"),
            hire_date=date(2019, 1, 15),
            as_of_date=date(2025, 2, 15),
            tables=biweekly_tables,
        )
        assert result.sdi == Decimal("2742.47")
        assert not result.capped
