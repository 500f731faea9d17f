"""
Tests for PayrollPeriodService.

Covers:
- Period creation and its definition checks (code, dates, duration)
- Overlap detection within one period type
- Lookups, listing and period summaries
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from payroll_kernel.domain.values import CalculationStatus, PeriodStatus, PeriodType
from payroll_kernel.exceptions import (
    InvalidPeriodDefinitionError,
    PeriodNotFoundError,
    PeriodOverlapError,
)
from payroll_kernel.services.period_service import (
    PayrollPeriodService,
    parse_period_code,
)


class TestParsePeriodCode:
    @pytest.mark.parametrize(
        "code,period_type,expected",
        [
            ("2025-W06", PeriodType.WEEKLY, (2025, 6)),
            ("2025-BW03", PeriodType.BIWEEKLY, (2025, 3)),
            ("2025-M12", PeriodType.MONTHLY, (2025, 12)),
        ],
    )
    def test_valid_codes(self, code, period_type, expected):
        assert parse_period_code(code, period_type) == expected

    @pytest.mark.parametrize(
        "code,period_type",
        [
            ("2025-03", PeriodType.MONTHLY),
            ("25-M03", PeriodType.MONTHLY),
            ("2025-W03", PeriodType.BIWEEKLY),
            ("2025-M13", PeriodType.MONTHLY),
            ("2025-BW00", PeriodType.BIWEEKLY),
        ],
    )
    def test_invalid_codes(self, code, period_type):
        with pytest.raises(InvalidPeriodDefinitionError) as exc_info:
            parse_period_code(code, period_type)
        assert exc_info.value.code == "INVALID_PERIOD_DEFINITION"


class TestCreatePeriod:
    """Period creation through the flush-only service."""

    def _create(self, session, actor_id, **overrides):
        kwargs = dict(
            period_code="2025-M03",
            period_type="monthly",
            start_date=date(2025, 3, 1),
            end_date=date(2025, 3, 31),
            payment_date=date(2025, 3, 31),
            actor_id=actor_id,
        )
        kwargs.update(overrides)
        return PayrollPeriodService(session).create_period(**kwargs)

    def test_creates_open_period(self, session, test_actor_id):
        period = self._create(session, test_actor_id, description="March")

        assert period.status == PeriodStatus.OPEN
        assert period.period_type == PeriodType.MONTHLY
        assert period.year == 2025
        assert period.period_number == 3
        assert period.description == "March"
        assert period.total_gross == Decimal("0")

    def test_february_month_accepted(self, session, test_actor_id):
        period = self._create(
            session,
            test_actor_id,
            period_code="2025-M02",
            start_date=date(2025, 2, 1),
            end_date=date(2025, 2, 28),
            payment_date=date(2025, 2, 28),
        )
        assert period.window.calendar_days == 28

    def test_second_half_of_february_accepted(self, session, test_actor_id):
        period = self._create(
            session,
            test_actor_id,
            period_code="2025-BW04",
            period_type="biweekly",
            start_date=date(2025, 2, 16),
            end_date=date(2025, 2, 28),
            payment_date=date(2025, 2, 28),
        )
        assert period.window.calendar_days == 13

    def test_start_after_end_rejected(self, session, test_actor_id):
        with pytest.raises(InvalidPeriodDefinitionError, match="after end_date"):
            self._create(session, test_actor_id, start_date=date(2025, 4, 1))

    def test_payment_before_end_rejected(self, session, test_actor_id):
        with pytest.raises(InvalidPeriodDefinitionError, match="payment_date"):
            self._create(session, test_actor_id, payment_date=date(2025, 3, 30))

    def test_duration_must_fit_period_type(self, session, test_actor_id):
        with pytest.raises(InvalidPeriodDefinitionError, match="covers 10 days"):
            self._create(
                session,
                test_actor_id,
                period_code="2025-BW05",
                period_type="biweekly",
                start_date=date(2025, 3, 1),
                end_date=date(2025, 3, 10),
                payment_date=date(2025, 3, 10),
            )

    def test_duplicate_code_rejected(self, session, test_actor_id):
        self._create(session, test_actor_id)
        with pytest.raises(InvalidPeriodDefinitionError, match="already exists"):
            self._create(
                session,
                test_actor_id,
                start_date=date(2026, 3, 1),
                end_date=date(2026, 3, 31),
                payment_date=date(2026, 3, 31),
            )

    def test_overlap_within_type_rejected(self, session, test_actor_id):
        self._create(session, test_actor_id)
        with pytest.raises(PeriodOverlapError) as exc_info:
            self._create(
                session,
                test_actor_id,
                period_code="2025-M04",
                start_date=date(2025, 3, 31),
                end_date=date(2025, 4, 29),
                payment_date=date(2025, 4, 30),
            )
        assert exc_info.value.existing_period_code == "2025-M03"

    def test_overlap_across_types_allowed(self, biweekly_period, weekly_period):
        """Weekly and biweekly rosters run side by side."""
        assert biweekly_period.start_date <= weekly_period.start_date
        assert weekly_period.end_date <= biweekly_period.end_date

    def test_adjacent_periods_allowed(self, session, test_actor_id):
        self._create(session, test_actor_id)
        april = self._create(
            session,
            test_actor_id,
            period_code="2025-M04",
            start_date=date(2025, 4, 1),
            end_date=date(2025, 4, 30),
            payment_date=date(2025, 4, 30),
        )
        assert april.status == PeriodStatus.OPEN


class TestPeriodLookup:
    def test_get_period(self, lifecycle, biweekly_period):
        fetched = lifecycle.get_period(biweekly_period.period_id)
        assert fetched == biweekly_period

    def test_unknown_period(self, lifecycle):
        missing = uuid4()
        with pytest.raises(PeriodNotFoundError) as exc_info:
            lifecycle.get_period(missing)
        assert exc_info.value.period_id == str(missing)

    def test_get_by_code(self, session, biweekly_period):
        period = PayrollPeriodService(session).get_by_code("2025-BW03")
        assert period.period_id == biweekly_period.period_id

    def test_list_periods_filters(self, session, biweekly_period, weekly_period):
        service = PayrollPeriodService(session)

        assert [p.period_code for p in service.list_periods()] == ["2025-BW03", "2025-W06"]
        assert [p.period_code for p in service.list_periods(period_type="weekly")] == [
            "2025-W06"
        ]
        assert service.list_periods(year=2024) == []
        assert len(service.list_periods(status=PeriodStatus.OPEN)) == 2


class TestPeriodSummary:
    """Totals exclude PENDING placeholders; counts include them."""

    def test_summary_counts_and_totals(
        self, lifecycle, calculate, make_employee, biweekly_period, test_actor_id
    ):
        calculate(make_employee("EMP-001"), biweekly_period)
        calculate(make_employee("EMP-002"), biweekly_period)
        lifecycle.register_pending(biweekly_period.period_id, ["EMP-003"], test_actor_id)

        summary = lifecycle.get_period_summary(biweekly_period.period_id)

        assert summary.employee_count == 3
        assert summary.status_counts == {
            CalculationStatus.CALCULATED.value: 2,
            CalculationStatus.PENDING.value: 1,
        }
        assert summary.total_gross == Decimal("15576.92")
        assert summary.total_net == Decimal("12476.80")
        assert summary.total_employer_contributions == Decimal("5955.96")
        assert [line.employee_id for line in summary.lines] == ["EMP-001", "EMP-002", "EMP-003"]
