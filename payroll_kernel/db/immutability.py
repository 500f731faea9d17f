"""
ORM-Level Immutability Enforcement.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity               | When Immutable                  | What may still change
---------------------|---------------------------------|------------------------------
PayrollCalculation   | status APPROVED or PROCESSED    | status APPROVED -> PROCESSED,
                     |                                 | payment fields, audit fields
PayrollPeriod        | status CLOSED                   | updated_at / updated_by_id

The lifecycle service already refuses these writes with typed errors
(CalculationLockedError, PeriodClosedError).  These listeners catch any
code path that bypasses the service and mutates the ORM object directly:

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Old values come from SQLAlchemy attribute history: history.deleted holds
what was loaded from the database, history.added what is being written.

===============================================================================
USAGE
===============================================================================

    from payroll_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

Tests that need to corrupt data on purpose may call
unregister_immutability_listeners() and re-register afterwards.
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from payroll_kernel.exceptions import ImmutabilityViolationError
from payroll_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})

_CALCULATION_MUTABLE_WHEN_LOCKED = _AUDIT_FIELDS | {
    "status",
    "payment_status",
    "processed_at",
    "processed_by_id",
}

_LOCKED_CALCULATION_STATUSES = ("approved", "processed")


def _old_value(target, field: str):
    history = get_history(target, field)
    if history.deleted:
        return history.deleted[0]
    return getattr(target, field)


def _as_str(value) -> str:
    return value.value if hasattr(value, "value") else str(value)


def _blocked(entity_type: str, target, field: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": "UPDATE",
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


# =============================================================================
# PayrollCalculation
# =============================================================================


def _check_calculation_immutability(mapper, connection, target):
    """
    Freeze amounts of APPROVED/PROCESSED calculations.

    Allowed on a locked row: APPROVED -> PROCESSED and payment bookkeeping.
    """
    old_status = _as_str(_old_value(target, "status"))
    if old_status not in _LOCKED_CALCULATION_STATUSES:
        return

    status_history = get_history(target, "status")
    if status_history.added:
        new_status = _as_str(status_history.added[0])
        if (old_status, new_status) not in (
            ("approved", "processed"),
            ("approved", "approved"),
            ("processed", "processed"),
        ):
            _blocked(
                "PayrollCalculation",
                target,
                "status",
                f"Cannot move locked calculation from {old_status} to {new_status}",
            )

    for attr in inspect(target).attrs:
        if attr.key in _CALCULATION_MUTABLE_WHEN_LOCKED:
            continue
        if attr.history.has_changes():
            _blocked(
                "PayrollCalculation",
                target,
                attr.key,
                f"Cannot modify field '{attr.key}' on {old_status} calculation",
            )


def _check_calculation_delete(mapper, connection, target):
    old_status = _as_str(_old_value(target, "status"))
    if old_status in _LOCKED_CALCULATION_STATUSES:
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": "PayrollCalculation",
                "entity_id": str(target.id),
                "operation": "DELETE",
            },
        )
        raise ImmutabilityViolationError(
            entity_type="PayrollCalculation",
            entity_id=str(target.id),
            reason=f"Cannot delete {old_status} calculation",
        )


# =============================================================================
# PayrollPeriod
# =============================================================================


def _check_period_immutability(mapper, connection, target):
    """Closed periods accept no changes except audit metadata."""
    if _as_str(_old_value(target, "status")) != "closed":
        return

    for attr in inspect(target).attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            _blocked(
                "PayrollPeriod",
                target,
                attr.key,
                f"Cannot modify field '{attr.key}' on closed payroll period",
            )


def _check_period_delete(mapper, connection, target):
    if _as_str(_old_value(target, "status")) == "closed":
        raise ImmutabilityViolationError(
            entity_type="PayrollPeriod",
            entity_id=str(target.id),
            reason="Cannot delete closed payroll period",
        )


_LISTENERS = (
    ("PayrollCalculationModel", "before_update", _check_calculation_immutability),
    ("PayrollCalculationModel", "before_delete", _check_calculation_delete),
    ("PayrollPeriodModel", "before_update", _check_period_immutability),
    ("PayrollPeriodModel", "before_delete", _check_period_delete),
)


def _models():
    from payroll_kernel.models import PayrollCalculationModel, PayrollPeriodModel

    return {
        "PayrollCalculationModel": PayrollCalculationModel,
        "PayrollPeriodModel": PayrollPeriodModel,
    }


def register_immutability_listeners() -> None:
    """Register all immutability listeners (idempotent)."""
    models = _models()
    for model_name, event_name, listener_fn in _LISTENERS:
        target = models[model_name]
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability listeners.

    WARNING: Only use this in tests.
    """
    models = _models()
    for model_name, event_name, listener_fn in _LISTENERS:
        _safe_remove_listener(models[model_name], event_name, listener_fn)
