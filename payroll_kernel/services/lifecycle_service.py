"""
PayrollLifecycleService -- period and calculation state machines.

Responsibility:
    Drives a payroll period OPEN -> CALCULATED -> APPROVED -> PAID -> CLOSED
    and each employee's calculation PENDING -> CALCULATED | REQUIRES_REVIEW
    -> APPROVED -> PROCESSED.  Owns the guarded compute-and-write that
    persists one employee's result.

Architecture position:
    Kernel > Services -- imperative shell.  Unlike the flush-only services
    this one opens and commits its own sessions (one transaction per unit
    of work) because the period lock must span the commit.

Concurrency:
    calculate_employee()
        1. CalculationGuard.acquire(employee, period) -- fails fast with
           DuplicateCalculationInFlightError, never waits.
        2. Pre-check period and stored calculation (short read).
        3. compute(period) -- pure, outside any lock.
        4. Period lock + SELECT ... FOR UPDATE on the period row, re-check
           the same conditions, upsert, commit.
        5. Release the guard.

    approve_period / mark_paid / close_period hold the period lock for
    their whole transaction, so a write that re-checks after approval sees
    the new status and is rejected with PeriodNotOpenError.

Invariants enforced:
    - No calculation write to a CLOSED period (PeriodClosedError).
    - No recompute of an APPROVED/PROCESSED calculation (CalculationLockedError).
    - No calculation write once the period is APPROVED or PAID
      (PeriodNotOpenError).
    - Period status only advances one step at a time
      (InvalidPeriodTransitionError).
    - Approval needs every calculation CALCULATED; it then approves all of
      them and the period in one transaction.

Failure modes:
    - NoCalculationsError, UnresolvedReviewsPendingError,
      CalculationsPendingError on approval.
    - CalculationNotFoundError / InvalidCalculationTransitionError on
      review resolution and pending withdrawal.

Audit relevance:
    Every transition records its timestamp and actor on the row and logs a
    structured event: calculation_written, review_resolved,
    pending_calculation_withdrawn, period_calculated, period_approved,
    period_paid, period_closed.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.dtos import (
    PayrollCalculation,
    PayrollPeriodInfo,
    PeriodSummary,
    StoredCalculation,
)
from payroll_kernel.domain.values import (
    PERIOD_TRANSITIONS,
    CalculationStatus,
    PaymentStatus,
    PeriodStatus,
    PeriodType,
)
from payroll_kernel.exceptions import (
    CalculationLockedError,
    CalculationNotFoundError,
    CalculationsPendingError,
    InvalidCalculationTransitionError,
    InvalidPeriodTransitionError,
    NoCalculationsError,
    PeriodClosedError,
    PeriodNotOpenError,
    UnresolvedReviewsPendingError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.models.payroll_calculation import PayrollCalculationModel
from payroll_kernel.models.payroll_period import PayrollPeriodModel
from payroll_kernel.services.calculation_guard import (
    CalculationGuard,
    PeriodLockRegistry,
)
from payroll_kernel.services.period_service import PayrollPeriodService, coerce_uuid

logger = get_logger("services.lifecycle")

ComputeFn = Callable[[PayrollPeriodInfo], PayrollCalculation]


class PayrollLifecycleService:
    """
    Period and calculation lifecycle over a session factory.

    One instance is shared by every worker of a batch; the guard and the
    period locks are process-wide for that instance.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        guard: CalculationGuard | None = None,
        period_locks: PeriodLockRegistry | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._guard = guard or CalculationGuard()
        self._period_locks = period_locks or PeriodLockRegistry()

    @property
    def guard(self) -> CalculationGuard:
        return self._guard

    @property
    def clock(self) -> Clock:
        return self._clock

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # -------------------------------------------------------------------------
    # Periods
    # -------------------------------------------------------------------------

    def create_period(
        self,
        period_code: str,
        period_type: PeriodType | str,
        start_date: date,
        end_date: date,
        payment_date: date,
        actor_id: UUID,
        description: str = "",
    ) -> PayrollPeriodInfo:
        with self._transaction() as session:
            return PayrollPeriodService(session).create_period(
                period_code=period_code,
                period_type=period_type,
                start_date=start_date,
                end_date=end_date,
                payment_date=payment_date,
                actor_id=actor_id,
                description=description,
            )

    def get_period(self, period_id: str | UUID) -> PayrollPeriodInfo:
        with self._transaction() as session:
            return PayrollPeriodService(session).get_period(period_id)

    def get_period_summary(self, period_id: str | UUID) -> PeriodSummary:
        with self._transaction() as session:
            return PayrollPeriodService(session).get_summary(period_id)

    def refresh_totals(self, period_id: str | UUID) -> PayrollPeriodInfo:
        """Recompute totals of an OPEN or CALCULATED period."""
        with self._period_locks.hold(str(period_id)), self._transaction() as session:
            periods = PayrollPeriodService(session)
            period = periods.get_model(period_id, for_update=True)
            if period.is_closed:
                raise PeriodClosedError(period.period_code, "refresh totals of")
            periods.refresh_totals(period)
            return period.to_dto()

    def mark_calculated(self, period_id: str | UUID, actor_id: UUID) -> PayrollPeriodInfo:
        """OPEN -> CALCULATED; totals are refreshed from stored calculations."""
        with self._period_locks.hold(str(period_id)), self._transaction() as session:
            periods = PayrollPeriodService(session)
            period = periods.get_model(period_id, for_update=True)
            self._check_transition(period, PeriodStatus.CALCULATED)

            periods.refresh_totals(period)
            period.status = PeriodStatus.CALCULATED.value
            period.calculated_at = self._clock.now()
            period.updated_by_id = actor_id
            session.flush()

            logger.info(
                "period_calculated",
                extra={
                    "period_code": period.period_code,
                    "actor_id": str(actor_id),
                    "total_gross": period.total_gross,
                    "total_net": period.total_net,
                },
            )
            return period.to_dto()

    def approve_period(self, period_id: str | UUID, actor_id: UUID) -> PayrollPeriodInfo:
        """
        CALCULATED -> APPROVED, approving every calculation atomically.

        Raises:
            NoCalculationsError: the period has no calculations.
            UnresolvedReviewsPendingError: some calculations are
                REQUIRES_REVIEW; the error names them.
            CalculationsPendingError: some calculations are still PENDING.
        """
        with self._period_locks.hold(str(period_id)), self._transaction() as session:
            periods = PayrollPeriodService(session)
            period = periods.get_model(period_id, for_update=True)
            self._check_transition(period, PeriodStatus.APPROVED)

            calculations = periods.calculations_for(period.id, for_update=True)
            if not calculations:
                raise NoCalculationsError(period.period_code)

            in_review = [
                c.employee_id
                for c in calculations
                if c.status == CalculationStatus.REQUIRES_REVIEW.value
            ]
            if in_review:
                logger.warning(
                    "approval_blocked_by_reviews",
                    extra={"period_code": period.period_code, "employee_ids": in_review},
                )
                raise UnresolvedReviewsPendingError(period.period_code, in_review)

            pending = [
                c.employee_id
                for c in calculations
                if c.status == CalculationStatus.PENDING.value
            ]
            if pending:
                logger.warning(
                    "approval_blocked_by_pending",
                    extra={"period_code": period.period_code, "employee_ids": pending},
                )
                raise CalculationsPendingError(period.period_code, pending)

            now = self._clock.now()
            for calc in calculations:
                calc.status = CalculationStatus.APPROVED.value
                calc.approved_at = now
                calc.approved_by_id = actor_id
                calc.updated_by_id = actor_id

            periods.refresh_totals(period)
            period.status = PeriodStatus.APPROVED.value
            period.approved_at = now
            period.approved_by_id = actor_id
            period.updated_by_id = actor_id
            session.flush()

            logger.info(
                "period_approved",
                extra={
                    "period_code": period.period_code,
                    "actor_id": str(actor_id),
                    "employee_count": len(calculations),
                    "total_net": period.total_net,
                },
            )
            return period.to_dto()

    def mark_paid(self, period_id: str | UUID, actor_id: UUID) -> PayrollPeriodInfo:
        """APPROVED -> PAID; every calculation becomes PROCESSED and paid."""
        with self._period_locks.hold(str(period_id)), self._transaction() as session:
            periods = PayrollPeriodService(session)
            period = periods.get_model(period_id, for_update=True)
            self._check_transition(period, PeriodStatus.PAID)

            now = self._clock.now()
            calculations = periods.calculations_for(period.id, for_update=True)
            for calc in calculations:
                calc.status = CalculationStatus.PROCESSED.value
                calc.payment_status = PaymentStatus.PAID.value
                calc.processed_at = now
                calc.processed_by_id = actor_id
                calc.updated_by_id = actor_id

            period.status = PeriodStatus.PAID.value
            period.paid_at = now
            period.paid_by_id = actor_id
            period.updated_by_id = actor_id
            session.flush()

            logger.info(
                "period_paid",
                extra={
                    "period_code": period.period_code,
                    "actor_id": str(actor_id),
                    "employee_count": len(calculations),
                },
            )
            return period.to_dto()

    def close_period(self, period_id: str | UUID, actor_id: UUID) -> PayrollPeriodInfo:
        """PAID -> CLOSED.  Terminal."""
        with self._period_locks.hold(str(period_id)), self._transaction() as session:
            periods = PayrollPeriodService(session)
            period = periods.get_model(period_id, for_update=True)
            self._check_transition(period, PeriodStatus.CLOSED)

            period.status = PeriodStatus.CLOSED.value
            period.closed_at = self._clock.now()
            period.closed_by_id = actor_id
            period.updated_by_id = actor_id
            session.flush()

            logger.info(
                "period_closed",
                extra={"period_code": period.period_code, "actor_id": str(actor_id)},
            )
            return period.to_dto()

    @staticmethod
    def _check_transition(period: PayrollPeriodModel, target: PeriodStatus) -> None:
        current = period.period_status
        if current == PeriodStatus.CLOSED:
            raise PeriodClosedError(period.period_code, f"move to {target.value}")
        if PERIOD_TRANSITIONS.get(current) != target:
            logger.warning(
                "invalid_period_transition",
                extra={
                    "period_code": period.period_code,
                    "from_status": current.value,
                    "to_status": target.value,
                },
            )
            raise InvalidPeriodTransitionError(period.period_code, current.value, target.value)

    # -------------------------------------------------------------------------
    # Calculations
    # -------------------------------------------------------------------------

    def register_pending(
        self,
        period_id: str | UUID,
        employee_ids: Iterable[str],
        actor_id: UUID,
    ) -> int:
        """Create PENDING placeholders for employees without a calculation."""
        with self._period_locks.hold(str(period_id)), self._transaction() as session:
            periods = PayrollPeriodService(session)
            period = periods.get_model(period_id, for_update=True)
            self._check_period_writable(period)

            existing = {c.employee_id for c in periods.calculations_for(period.id)}
            created = 0
            for employee_id in dict.fromkeys(str(e) for e in employee_ids):
                if employee_id in existing:
                    continue
                session.add(
                    PayrollCalculationModel(
                        employee_id=employee_id,
                        period_id=period.id,
                        status=CalculationStatus.PENDING.value,
                        payment_status=PaymentStatus.PENDING.value,
                        version=0,
                        created_by_id=actor_id,
                    )
                )
                created += 1
            session.flush()

            logger.info(
                "pending_calculations_registered",
                extra={"period_code": period.period_code, "registered_count": created},
            )
            return created

    def calculate_employee(
        self,
        employee_id: str,
        period_id: str | UUID,
        compute: ComputeFn,
        actor_id: UUID,
    ) -> StoredCalculation:
        """
        Guarded compute-and-write for one (employee, period).

        ``compute`` receives the period and returns the assembled
        PayrollCalculation; it runs outside every lock except the guard.

        Raises:
            DuplicateCalculationInFlightError: the pair is already in flight.
            PeriodNotFoundError, PeriodClosedError, CalculationLockedError,
            PeriodNotOpenError: checked in that order, before computing and
                again inside the write transaction.
            Anything ``compute`` raises, unchanged.
        """
        employee_id = str(employee_id)
        period_key = str(period_id)

        with self._guard.hold(employee_id, period_key), LogContext.bind(
            employee_id=employee_id, period_id=period_key
        ):
            with self._transaction() as session:
                period, _ = self._load_writable(session, employee_id, period_id)
                period_info = period.to_dto()

            result = compute(period_info)
            if result.employee_id != employee_id:
                raise ValueError(
                    f"compute returned a result for {result.employee_id}, "
                    f"expected {employee_id}"
                )

            with self._period_locks.hold(period_key), self._transaction() as session:
                period, calc = self._load_writable(
                    session, employee_id, period_id, for_update=True
                )
                if calc is None:
                    calc = PayrollCalculationModel(
                        employee_id=employee_id,
                        period_id=period.id,
                        version=0,
                        payment_status=PaymentStatus.PENDING.value,
                        created_by_id=actor_id,
                    )
                    session.add(calc)
                calc.apply_result(result, self._clock.now())
                calc.updated_by_id = actor_id
                session.flush()

                if period.period_status == PeriodStatus.CALCULATED:
                    PayrollPeriodService(session).refresh_totals(period)

                stored = calc.to_dto()

        logger.info(
            "calculation_written",
            extra={
                "employee_id": employee_id,
                "period_id": period_key,
                "status": stored.status.value,
                "version": stored.version,
                "net_pay": stored.net_pay,
            },
        )
        return stored

    def _load_writable(
        self,
        session: Session,
        employee_id: str,
        period_id: str | UUID,
        for_update: bool = False,
    ) -> tuple[PayrollPeriodModel, PayrollCalculationModel | None]:
        period = PayrollPeriodService(session).get_model(period_id, for_update=for_update)
        if period.is_closed:
            raise PeriodClosedError(period.period_code, "write a calculation to")

        calc = self._find_calculation(session, employee_id, period.id, for_update)
        if calc is not None and calc.calculation_status.is_locked:
            raise CalculationLockedError(employee_id, str(period.id), calc.status)

        if not period.accepts_calculations:
            raise PeriodNotOpenError(period.period_code, period.status)
        return period, calc

    @staticmethod
    def _check_period_writable(period: PayrollPeriodModel) -> None:
        if period.is_closed:
            raise PeriodClosedError(period.period_code, "write a calculation to")
        if not period.accepts_calculations:
            raise PeriodNotOpenError(period.period_code, period.status)

    @staticmethod
    def _find_calculation(
        session: Session,
        employee_id: str,
        period_uuid: UUID,
        for_update: bool = False,
    ) -> PayrollCalculationModel | None:
        stmt = select(PayrollCalculationModel).where(
            PayrollCalculationModel.employee_id == employee_id,
            PayrollCalculationModel.period_id == period_uuid,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return session.execute(stmt).scalar_one_or_none()

    def resolve_review(
        self,
        employee_id: str,
        period_id: str | UUID,
        actor_id: UUID,
        note: str,
    ) -> StoredCalculation:
        """
        Human resolution of a REQUIRES_REVIEW calculation -> CALCULATED.

        The review reason stays on the record; the resolver, time and note
        are stored next to it.
        """
        employee_id = str(employee_id)
        with self._period_locks.hold(str(period_id)), self._transaction() as session:
            period = PayrollPeriodService(session).get_model(period_id, for_update=True)
            self._check_period_writable(period)

            calc = self._find_calculation(session, employee_id, period.id, for_update=True)
            if calc is None:
                raise CalculationNotFoundError(employee_id, str(period.id))
            if calc.status != CalculationStatus.REQUIRES_REVIEW.value:
                raise InvalidCalculationTransitionError(
                    employee_id, calc.status, CalculationStatus.CALCULATED.value
                )

            calc.status = CalculationStatus.CALCULATED.value
            calc.review_resolved_at = self._clock.now()
            calc.review_resolved_by_id = actor_id
            calc.review_resolution_note = note
            calc.updated_by_id = actor_id
            session.flush()

            logger.info(
                "review_resolved",
                extra={
                    "employee_id": employee_id,
                    "period_code": period.period_code,
                    "actor_id": str(actor_id),
                    "net_pay": calc.net_pay,
                },
            )
            return calc.to_dto()

    def withdraw_pending(
        self,
        employee_id: str,
        period_id: str | UUID,
        actor_id: UUID,
        note: str,
    ) -> None:
        """
        Remove an employee's PENDING placeholder from a writable period.

        Used when the employee cannot be calculated at all (incomplete
        master data) so the rest of the period can still be approved.
        Only PENDING rows can be withdrawn; anything already calculated
        raises InvalidCalculationTransitionError.
        """
        employee_id = str(employee_id)
        with self._period_locks.hold(str(period_id)), self._transaction() as session:
            period = PayrollPeriodService(session).get_model(period_id, for_update=True)
            self._check_period_writable(period)

            calc = self._find_calculation(session, employee_id, period.id, for_update=True)
            if calc is None:
                raise CalculationNotFoundError(employee_id, str(period.id))
            if calc.status != CalculationStatus.PENDING.value:
                raise InvalidCalculationTransitionError(employee_id, calc.status, "withdrawn")

            session.delete(calc)
            session.flush()

            logger.info(
                "pending_calculation_withdrawn",
                extra={
                    "employee_id": employee_id,
                    "period_code": period.period_code,
                    "actor_id": str(actor_id),
                    "note": note,
                },
            )

    def get_calculation(self, employee_id: str, period_id: str | UUID) -> StoredCalculation:
        with self._transaction() as session:
            calc = self._find_calculation(session, str(employee_id), coerce_uuid(period_id))
            if calc is None:
                raise CalculationNotFoundError(str(employee_id), str(period_id))
            return calc.to_dto()
