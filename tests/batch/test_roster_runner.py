"""
Tests for payroll_batch -- roster selection and PayrollBatchRunner.

Validates per-employee failure isolation, roster filtering by collar and
employment status, configuration errors aborting before any write,
cooperative cancellation, and the bounded worker pool.
"""

import threading
import time
from decimal import Decimal

import pytest

from payroll_batch.domain.cancellation import CancellationToken
from payroll_batch.domain.roster import select_roster
from payroll_batch.domain.types import BatchRunResult, BatchRunStatus
from payroll_batch.services.executor import PayrollBatchRunner
from payroll_config.settings import EngineSettings
from payroll_kernel.domain.values import (
    CalculationStatus,
    CollarType,
    EmploymentStatus,
    PeriodStatus,
    PeriodType,
)
from payroll_kernel.exceptions import (
    CalculationNotFoundError,
    MissingTaxTableError,
    UnresolvedReviewsPendingError,
)
from payroll_kernel.services.lifecycle_service import PayrollLifecycleService


@pytest.fixture
def runner(lifecycle, table_repository, employer_config, deterministic_clock):
    return PayrollBatchRunner(
        lifecycle,
        table_repository,
        employer_config,
        max_workers=4,
        clock=deterministic_clock,
    )


# =============================================================================
# Roster selection
# =============================================================================


class TestSelectRoster:
    def test_biweekly_takes_white_collar_only(self, make_employee):
        roster = select_roster(
            [
                make_employee("EMP-001"),
                make_employee("EMP-002", collar_type=CollarType.BLUE_COLLAR),
                make_employee("EMP-003", collar_type=CollarType.GRAY_COLLAR),
            ],
            PeriodType.BIWEEKLY,
        )
        assert [e.employee_id for e in roster.eligible] == ["EMP-001"]
        assert roster.skipped == ()

    def test_weekly_takes_blue_and_gray_collar(self, make_employee):
        roster = select_roster(
            [
                make_employee("EMP-001"),
                make_employee("EMP-002", collar_type=CollarType.BLUE_COLLAR),
                make_employee("EMP-003", collar_type=CollarType.GRAY_COLLAR),
            ],
            "weekly",
        )
        assert [e.employee_id for e in roster.eligible] == ["EMP-002", "EMP-003"]

    def test_monthly_takes_everyone(self, make_employee):
        roster = select_roster(
            [
                make_employee("EMP-001"),
                make_employee("EMP-002", collar_type=CollarType.BLUE_COLLAR),
            ],
            PeriodType.MONTHLY,
        )
        assert len(roster.eligible) == 2

    def test_inactive_matching_collar_is_skipped(self, make_employee):
        roster = select_roster(
            [
                make_employee("EMP-001", employment_status=EmploymentStatus.ON_LEAVE),
                make_employee("EMP-002", employment_status=EmploymentStatus.TERMINATED),
                make_employee(
                    "EMP-003",
                    collar_type=CollarType.BLUE_COLLAR,
                    employment_status=EmploymentStatus.INACTIVE,
                ),
            ],
            PeriodType.BIWEEKLY,
        )
        assert roster.eligible == ()
        assert roster.skipped == ("EMP-001", "EMP-002")

    def test_duplicates_collapse(self, make_employee):
        roster = select_roster([make_employee(), make_employee()], PeriodType.BIWEEKLY)
        assert len(roster.eligible) == 1


class TestBatchRunResult:
    @pytest.mark.parametrize(
        "succeeded,failed,cancelled,expected",
        [
            (3, 0, 0, BatchRunStatus.COMPLETED),
            (0, 0, 0, BatchRunStatus.COMPLETED),
            (2, 1, 0, BatchRunStatus.PARTIALLY_COMPLETED),
            (0, 2, 0, BatchRunStatus.FAILED),
            (1, 0, 2, BatchRunStatus.CANCELLED),
            (0, 1, 1, BatchRunStatus.CANCELLED),
        ],
    )
    def test_status_for(self, succeeded, failed, cancelled, expected):
        assert BatchRunResult.status_for(succeeded, failed, cancelled) == expected


# =============================================================================
# Runner
# =============================================================================


class TestRunner:
    def test_rejects_zero_workers(self, lifecycle, table_repository):
        with pytest.raises(ValueError):
            PayrollBatchRunner(lifecycle, table_repository, max_workers=0)

    def test_full_roster_completes(
        self, runner, lifecycle, make_employee, biweekly_period, test_actor_id
    ):
        result = runner.run(
            biweekly_period.period_id,
            [make_employee("EMP-001"), make_employee("EMP-002")],
            test_actor_id,
        )

        assert result.status == BatchRunStatus.COMPLETED
        assert result.succeeded == ("EMP-001", "EMP-002")
        assert result.total_employees == 2
        assert result.period_id == biweekly_period.period_id

        period = lifecycle.get_period(biweekly_period.period_id)
        assert period.status == PeriodStatus.CALCULATED
        assert period.total_net == Decimal("12476.80")

    def test_partial_failure_keeps_others(
        self, runner, lifecycle, make_employee, make_incidences, biweekly_period, test_actor_id
    ):
        """One bad record fails alone; its placeholder is withdrawn."""
        employees = [
            make_employee("EMP-001"),
            make_employee("EMP-002", daily_salary=None),
            make_employee("EMP-003"),
        ]
        result = runner.run(
            biweekly_period.period_id,
            employees,
            test_actor_id,
            incidences={
                "EMP-003": make_incidences("EMP-003", other_deduction_amount="10000.00")
            },
        )

        assert result.status == BatchRunStatus.PARTIALLY_COMPLETED
        assert result.succeeded == ("EMP-001", "EMP-003")
        assert result.requires_review == ("EMP-003",)
        failure = result.failure_for("EMP-002")
        assert failure.code == "EMPLOYEE_DATA_INCOMPLETE"
        assert "daily_salary" in failure.message
        assert result.failure_for("EMP-001") is None

        assert lifecycle.get_period(biweekly_period.period_id).status == PeriodStatus.CALCULATED
        with pytest.raises(CalculationNotFoundError):
            lifecycle.get_calculation("EMP-002", biweekly_period.period_id)

    def test_period_approvable_after_partial_failure(
        self, runner, lifecycle, make_employee, make_incidences, biweekly_period, test_actor_id
    ):
        result = runner.run(
            biweekly_period.period_id,
            [
                make_employee("EMP-001"),
                make_employee("EMP-002", hire_date=None),
                make_employee("EMP-003"),
            ],
            test_actor_id,
            incidences={
                "EMP-003": make_incidences("EMP-003", other_deduction_amount="10000.00")
            },
        )
        assert [f.employee_id for f in result.failed] == ["EMP-002"]

        with pytest.raises(UnresolvedReviewsPendingError):
            lifecycle.approve_period(biweekly_period.period_id, test_actor_id)

        lifecycle.resolve_review("EMP-003", biweekly_period.period_id, test_actor_id, "ok")
        approved = lifecycle.approve_period(biweekly_period.period_id, test_actor_id)

        assert approved.status == PeriodStatus.APPROVED
        summary = lifecycle.get_period_summary(biweekly_period.period_id)
        assert summary.employee_count == 2

    def test_failed_rerun_keeps_earlier_result(
        self, runner, lifecycle, make_employee, biweekly_period, test_actor_id
    ):
        """Bad data on a re-run leaves the earlier CALCULATED row in place."""
        runner.run(biweekly_period.period_id, [make_employee("EMP-001")], test_actor_id)

        result = runner.run(
            biweekly_period.period_id,
            [make_employee("EMP-001", daily_salary=None)],
            test_actor_id,
        )

        assert result.failure_for("EMP-001").code == "EMPLOYEE_DATA_INCOMPLETE"
        stored = lifecycle.get_calculation("EMP-001", biweekly_period.period_id)
        assert stored.status == CalculationStatus.CALCULATED
        assert stored.version == 1
        assert stored.net_pay == Decimal("6238.40")

    def test_every_employee_failing(self, runner, make_employee, biweekly_period, test_actor_id):
        result = runner.run(
            biweekly_period.period_id,
            [make_employee("EMP-001", hire_date=None)],
            test_actor_id,
        )
        assert result.status == BatchRunStatus.FAILED
        assert result.failed_count == 1

    def test_roster_filtering(
        self, runner, lifecycle, make_employee, biweekly_period, test_actor_id
    ):
        result = runner.run(
            biweekly_period.period_id,
            [
                make_employee("EMP-001"),
                make_employee("EMP-002", collar_type=CollarType.BLUE_COLLAR),
                make_employee("EMP-003", employment_status=EmploymentStatus.INACTIVE),
            ],
            test_actor_id,
        )

        assert result.succeeded == ("EMP-001",)
        assert result.skipped == ("EMP-003",)
        summary = lifecycle.get_period_summary(biweekly_period.period_id)
        assert [line.employee_id for line in summary.lines] == ["EMP-001"]

    def test_weekly_roster_uses_weekly_tables(
        self, runner, lifecycle, make_employee, weekly_period, test_actor_id
    ):
        result = runner.run(
            weekly_period.period_id,
            [make_employee("EMP-010", collar_type=CollarType.BLUE_COLLAR)],
            test_actor_id,
        )

        assert result.status == BatchRunStatus.COMPLETED
        stored = lifecycle.get_calculation("EMP-010", weekly_period.period_id)
        # 7 days at 500.00
        assert stored.gross_income > Decimal("3500.00")

    def test_missing_tables_abort_before_any_write(
        self, runner, lifecycle, make_employee, biweekly_period, test_actor_id
    ):
        with pytest.raises(MissingTaxTableError) as exc_info:
            runner.run(
                biweekly_period.period_id,
                [make_employee()],
                test_actor_id,
                table_year=1999,
            )

        assert exc_info.value.year == 1999
        summary = lifecycle.get_period_summary(biweekly_period.period_id)
        assert summary.employee_count == 0
        assert summary.period.status == PeriodStatus.OPEN

    def test_rerun_on_calculated_period_recomputes(
        self, runner, lifecycle, make_employee, make_incidences, biweekly_period, test_actor_id
    ):
        runner.run(biweekly_period.period_id, [make_employee()], test_actor_id)
        runner.run(
            biweekly_period.period_id,
            [make_employee()],
            test_actor_id,
            incidences={"EMP-001": make_incidences(bonus_amount="1000.00")},
        )

        stored = lifecycle.get_calculation("EMP-001", biweekly_period.period_id)
        assert stored.version == 2
        period = lifecycle.get_period(biweekly_period.period_id)
        assert period.status == PeriodStatus.CALCULATED
        assert period.total_gross == Decimal("8788.46")

    def test_batch_events_logged(
        self, runner, make_employee, biweekly_period, test_actor_id, captured_logs
    ):
        result = runner.run(biweekly_period.period_id, [make_employee()], test_actor_id)

        records = captured_logs()
        completed = [r for r in records if r["message"] == "batch_completed"]
        assert len(completed) == 1
        assert completed[0]["batch_id"] == result.batch_id
        assert completed[0]["status"] == "completed"
        written = [r for r in records if r["message"] == "calculation_written"]
        assert written[0]["batch_id"] == result.batch_id


class TestCancellation:
    def test_cancelled_before_start(
        self, runner, lifecycle, make_employee, biweekly_period, test_actor_id
    ):
        token = CancellationToken()
        token.cancel()

        result = runner.run(
            biweekly_period.period_id,
            [make_employee("EMP-001"), make_employee("EMP-002")],
            test_actor_id,
            cancel_token=token,
        )

        assert result.status == BatchRunStatus.CANCELLED
        assert result.cancelled == ("EMP-001", "EMP-002")
        assert result.succeeded == ()
        assert lifecycle.get_period(biweekly_period.period_id).status == PeriodStatus.OPEN

    def test_cancel_mid_run_lets_running_work_finish(
        self,
        session_factory,
        deterministic_clock,
        table_repository,
        make_employee,
        biweekly_period,
        test_actor_id,
    ):
        token = CancellationToken()

        class CancelAfterFirst(PayrollLifecycleService):
            def calculate_employee(self, *args, **kwargs):
                stored = super().calculate_employee(*args, **kwargs)
                token.cancel()
                return stored

        lifecycle = CancelAfterFirst(session_factory, clock=deterministic_clock)
        runner = PayrollBatchRunner(lifecycle, table_repository, max_workers=1)

        result = runner.run(
            biweekly_period.period_id,
            [make_employee("EMP-001"), make_employee("EMP-002"), make_employee("EMP-003")],
            test_actor_id,
            cancel_token=token,
        )

        assert result.status == BatchRunStatus.CANCELLED
        assert result.succeeded == ("EMP-001",)
        assert result.cancelled == ("EMP-002", "EMP-003")
        assert result.total_employees == 3
        assert lifecycle.get_period(biweekly_period.period_id).status == PeriodStatus.OPEN


class TestBoundedPool:
    def test_never_exceeds_max_workers(
        self,
        session_factory,
        deterministic_clock,
        table_repository,
        make_employee,
        biweekly_period,
        test_actor_id,
    ):
        lock = threading.Lock()
        state = {"running": 0, "peak": 0}

        class Tracking(PayrollLifecycleService):
            def calculate_employee(self, *args, **kwargs):
                with lock:
                    state["running"] += 1
                    state["peak"] = max(state["peak"], state["running"])
                try:
                    time.sleep(0.02)
                    return super().calculate_employee(*args, **kwargs)
                finally:
                    with lock:
                        state["running"] -= 1

        lifecycle = Tracking(session_factory, clock=deterministic_clock)
        runner = PayrollBatchRunner(lifecycle, table_repository, max_workers=2)

        employees = [make_employee(f"EMP-{i:03d}") for i in range(1, 7)]
        result = runner.run(biweekly_period.period_id, employees, test_actor_id)

        assert result.status == BatchRunStatus.COMPLETED
        assert result.succeeded_count == 6
        assert 1 <= state["peak"] <= 2


class TestFromSettings:
    def test_worker_count_and_tables_from_settings(
        self, lifecycle, deterministic_clock, make_employee, biweekly_period, test_actor_id
    ):
        settings = EngineSettings(max_workers=2)
        runner = PayrollBatchRunner.from_settings(lifecycle, settings, clock=deterministic_clock)

        result = runner.run(
            biweekly_period.period_id,
            [make_employee("EMP-001"), make_employee("EMP-002")],
            test_actor_id,
        )

        assert runner.max_workers == 2
        assert result.status == BatchRunStatus.COMPLETED
        assert lifecycle.get_period(biweekly_period.period_id).total_net == Decimal("12476.80")

    def test_tables_dir_without_tables(
        self, lifecycle, tmp_path, make_employee, biweekly_period, test_actor_id
    ):
        runner = PayrollBatchRunner.from_settings(
            lifecycle, EngineSettings(tables_dir=tmp_path / "empty")
        )

        with pytest.raises(MissingTaxTableError):
            runner.run(biweekly_period.period_id, [make_employee()], test_actor_id)

        with pytest.raises(CalculationNotFoundError):
            lifecycle.get_calculation("EMP-001", biweekly_period.period_id)
