"""
PayrollBatchRunner -- bounded, cancellable roster calculation.

Contract:
    run() calculates every eligible employee of one period and returns a
    BatchRunResult.  Per-employee errors become EmployeeFailure entries;
    configuration errors abort the run before any employee is touched.

Architecture: payroll_batch/services.  Imports from payroll_batch.domain,
    payroll_config, payroll_engines and kernel services.

Flow:
    1. Load the period and its TaxTableSet (once).
    2. Select the roster for the period type; register PENDING rows.
    3. Dispatch employees to a ThreadPoolExecutor, never more than
       max_workers in flight; a new employee launches only when an earlier
       one completes, and only while the token is not cancelled.
    4. Each unit goes through PayrollLifecycleService.calculate_employee
       (guarded compute-and-write).  An employee rejected for incomplete
       master data has its PENDING placeholder withdrawn so the period
       can still be approved.
    5. OPEN period -> mark_calculated; CALCULATED period -> refresh
       totals.  A cancelled run leaves the period status unchanged.

Non-goals:
    - No retries.  A DuplicateCalculationInFlightError is reported like
      any other per-employee failure.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import date
from uuid import UUID, uuid4

from payroll_batch.domain.cancellation import CancellationToken
from payroll_batch.domain.roster import select_roster
from payroll_batch.domain.types import BatchRunResult, EmployeeFailure
from payroll_config.employer import EmployerConfig
from payroll_config.repository import TaxTableRepository
from payroll_config.settings import DEFAULT_MAX_WORKERS, EngineSettings
from payroll_engines.assembler import PayrollCalculator
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.dtos import PayrollPeriodInfo, StoredCalculation
from payroll_kernel.domain.values import (
    CalculationStatus,
    Employee,
    IncidenceAggregate,
    PeriodStatus,
)
from payroll_kernel.exceptions import (
    CalculationNotFoundError,
    ConfigurationError,
    EmployeeDataIncompleteError,
    InvalidCalculationTransitionError,
    PayrollEngineError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.services.lifecycle_service import PayrollLifecycleService

logger = get_logger("batch.executor")


class PayrollBatchRunner:
    """Roster-wide calculation over a shared lifecycle service.

    Contract:
        - ``run()`` never raises for a single employee's failure.
        - ``run()`` raises ConfigurationError subclasses before any write.
        - The runner itself holds no per-run state; one instance may serve
          many sequential runs.
    """

    def __init__(
        self,
        lifecycle: PayrollLifecycleService,
        repository: TaxTableRepository,
        employer_config: EmployerConfig | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        clock: Clock | None = None,
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self._lifecycle = lifecycle
        self._repository = repository
        self._employer_config = employer_config or EmployerConfig.with_defaults()
        self._max_workers = max_workers
        self._clock = clock or SystemClock()

    @classmethod
    def from_settings(
        cls,
        lifecycle: PayrollLifecycleService,
        settings: EngineSettings,
        employer_config: EmployerConfig | None = None,
        clock: Clock | None = None,
    ) -> PayrollBatchRunner:
        """Runner reading tables from ``settings.tables_dir`` with ``settings.max_workers``."""
        return cls(
            lifecycle,
            TaxTableRepository(settings.tables_dir),
            employer_config,
            max_workers=settings.max_workers,
            clock=clock,
        )

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def run(
        self,
        period_id: str | UUID,
        employees: Iterable[Employee],
        actor_id: UUID,
        incidences: Mapping[str, IncidenceAggregate] | None = None,
        holidays: Iterable[date] = (),
        cancel_token: CancellationToken | None = None,
        table_year: int | None = None,
    ) -> BatchRunResult:
        """Calculate every eligible employee of ``period_id``.

        Raises:
            PeriodNotFoundError: unknown period.
            MissingTaxTableError, InvalidBracketConfigurationError: the
                tables for the period cannot be used; nothing is written.
        """
        start_time = time.monotonic()
        started_at = self._clock.now()
        batch_id = str(uuid4())
        token = cancel_token or CancellationToken()
        incidences = incidences or {}
        holidays = tuple(holidays)

        with LogContext.bind(batch_id=batch_id, period_id=str(period_id)):
            period = self._lifecycle.get_period(period_id)
            try:
                tables = self._repository.load(table_year or period.year, period.period_type)
            except ConfigurationError as exc:
                logger.error(
                    "batch_aborted",
                    extra={"period_code": period.period_code, "error_code": exc.code},
                )
                raise
            calculator = PayrollCalculator(tables, self._employer_config)

            roster = select_roster(employees, period.period_type)
            self._lifecycle.register_pending(
                period.period_id, [e.employee_id for e in roster.eligible], actor_id
            )

            logger.info(
                "batch_started",
                extra={
                    "period_code": period.period_code,
                    "roster_size": len(roster.eligible),
                    "skipped": len(roster.skipped),
                    "max_workers": self._max_workers,
                    "table_year": tables.year,
                },
            )

            succeeded: list[str] = []
            requires_review: list[str] = []
            failed: list[EmployeeFailure] = []
            cancelled: list[str] = []

            queue = iter(roster.eligible)
            in_flight: dict[Future[StoredCalculation], str] = {}
            with ThreadPoolExecutor(
                max_workers=self._max_workers, thread_name_prefix="payroll-batch"
            ) as pool:
                while True:
                    while len(in_flight) < self._max_workers and not token.is_cancelled:
                        employee = next(queue, None)
                        if employee is None:
                            break
                        future = pool.submit(
                            self._calculate_one,
                            batch_id,
                            period,
                            employee,
                            incidences.get(employee.employee_id),
                            holidays,
                            calculator,
                            actor_id,
                        )
                        in_flight[future] = employee.employee_id

                    if not in_flight:
                        break

                    done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                    for future in done:
                        employee_id = in_flight.pop(future)
                        try:
                            stored = future.result()
                        except EmployeeDataIncompleteError as exc:
                            failed.append(EmployeeFailure(employee_id, exc.code, str(exc)))
                            logger.warning(
                                "employee_calculation_failed",
                                extra={"employee_id": employee_id, "error_code": exc.code},
                            )
                            self._withdraw_placeholder(employee_id, period, actor_id, str(exc))
                        except PayrollEngineError as exc:
                            failed.append(EmployeeFailure(employee_id, exc.code, str(exc)))
                            logger.warning(
                                "employee_calculation_failed",
                                extra={"employee_id": employee_id, "error_code": exc.code},
                            )
                        except Exception as exc:
                            failed.append(
                                EmployeeFailure(employee_id, "UNHANDLED_EXCEPTION", str(exc))
                            )
                            logger.exception(
                                "employee_calculation_crashed",
                                extra={"employee_id": employee_id},
                            )
                        else:
                            succeeded.append(employee_id)
                            if stored.status == CalculationStatus.REQUIRES_REVIEW:
                                requires_review.append(employee_id)

            cancelled.extend(e.employee_id for e in queue)
            if cancelled:
                logger.warning(
                    "batch_cancelled",
                    extra={"period_code": period.period_code, "cancelled": len(cancelled)},
                )
            else:
                self._finish_period(period.period_id, actor_id)

            status = BatchRunResult.status_for(len(succeeded), len(failed), len(cancelled))
            duration_ms = int((time.monotonic() - start_time) * 1000)

            logger.info(
                "batch_completed",
                extra={
                    "period_code": period.period_code,
                    "status": status.value,
                    "succeeded": len(succeeded),
                    "requires_review": len(requires_review),
                    "failed": len(failed),
                    "cancelled": len(cancelled),
                    "duration_ms": duration_ms,
                },
            )

            return BatchRunResult(
                batch_id=batch_id,
                period_id=period.period_id,
                status=status,
                succeeded=tuple(sorted(succeeded)),
                requires_review=tuple(sorted(requires_review)),
                failed=tuple(sorted(failed, key=lambda f: f.employee_id)),
                cancelled=tuple(cancelled),
                skipped=roster.skipped,
                started_at=started_at,
                completed_at=self._clock.now(),
                duration_ms=duration_ms,
            )

    def _calculate_one(
        self,
        batch_id: str,
        period: PayrollPeriodInfo,
        employee: Employee,
        incidences: IncidenceAggregate | None,
        holidays: tuple[date, ...],
        calculator: PayrollCalculator,
        actor_id: UUID,
    ) -> StoredCalculation:
        # Worker threads do not inherit the dispatcher's context.
        with LogContext.bind(batch_id=batch_id, period_id=period.period_id):
            return self._lifecycle.calculate_employee(
                employee.employee_id,
                period.period_id,
                lambda p: calculator.calculate(
                    employee, incidences, p.period_id, p.window, holidays
                ),
                actor_id,
            )

    def _withdraw_placeholder(
        self,
        employee_id: str,
        period: PayrollPeriodInfo,
        actor_id: UUID,
        reason: str,
    ) -> None:
        # A calculated row from an earlier run stays; only PENDING is withdrawn.
        try:
            self._lifecycle.withdraw_pending(employee_id, period.period_id, actor_id, reason)
        except (CalculationNotFoundError, InvalidCalculationTransitionError) as exc:
            logger.info(
                "pending_withdrawal_skipped",
                extra={"employee_id": employee_id, "error_code": exc.code},
            )

    def _finish_period(self, period_id: str, actor_id: UUID) -> None:
        period = self._lifecycle.get_period(period_id)
        if period.status == PeriodStatus.OPEN:
            self._lifecycle.mark_calculated(period_id, actor_id)
        elif period.status == PeriodStatus.CALCULATED:
            self._lifecycle.refresh_totals(period_id)
