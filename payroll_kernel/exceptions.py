"""
Typed Exception Hierarchy for the Payroll Engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Payroll runs are audited. A caller deciding whether to abort a batch, skip
one employee, or tell an operator to retry later must be able to decide by
TYPE, never by parsing a message string:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        lifecycle.approve_period(period_id, actor_id)
    except UnresolvedReviewsPendingError as e:
        notify_reviewers(e.employee_ids)
        api_response(code=e.code, employees=e.employee_ids)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PayrollEngineError (base)
    |
    +-- ConfigurationError                  fatal for a whole batch
    |   +-- MissingTaxTableError
    |   +-- InvalidBracketConfigurationError
    |   +-- InvalidEmployerConfigError
    |
    +-- CalculationError
    |   +-- EmployeeDataIncompleteError     per-employee, batch continues
    |   +-- CalculationLockedError
    |   +-- CalculationNotFoundError
    |   +-- InvalidCalculationTransitionError
    |
    +-- ConcurrencyError
    |   +-- DuplicateCalculationInFlightError
    |
    +-- PeriodError
    |   +-- PeriodNotFoundError
    |   +-- PeriodClosedError
    |   +-- PeriodNotOpenError
    |   +-- InvalidPeriodTransitionError
    |   +-- InvalidPeriodDefinitionError
    |   +-- PeriodOverlapError
    |   +-- ApprovalBlockedError
    |       +-- UnresolvedReviewsPendingError
    |       +-- CalculationsPendingError
    |       +-- NoCalculationsError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                            | When Raised
----------------|---------------------------------|------------------------------------
Configuration   | MISSING_TAX_TABLE               | No table for (year, period type)
                | INVALID_BRACKET_CONFIGURATION   | Gap/overlap/bad rate in a table
                | INVALID_EMPLOYER_CONFIG         | Work-risk or housing rate invalid
----------------|---------------------------------|------------------------------------
Calculation     | EMPLOYEE_DATA_INCOMPLETE        | Missing salary, hire date, ...
                | CALCULATION_LOCKED              | Recompute of APPROVED/PROCESSED
                | CALCULATION_NOT_FOUND           | No calculation for the pair
                | INVALID_CALCULATION_TRANSITION  | e.g. resolve a non-review record
----------------|---------------------------------|------------------------------------
Concurrency     | DUPLICATE_CALCULATION_IN_FLIGHT | Same (employee, period) in flight
----------------|---------------------------------|------------------------------------
Period          | PERIOD_NOT_FOUND                | Unknown period id
                | PERIOD_CLOSED                   | Any write to a CLOSED period
                | PERIOD_NOT_OPEN                 | Write after approval
                | INVALID_PERIOD_TRANSITION       | Out-of-order status change
                | INVALID_PERIOD_DEFINITION       | Bad code, dates or duration
                | PERIOD_OVERLAP                  | Same-type date ranges overlap
                | UNRESOLVED_REVIEWS_PENDING      | Approve with REQUIRES_REVIEW rows
                | CALCULATIONS_PENDING            | Approve with PENDING rows
                | NO_CALCULATIONS                 | Approve an empty period
----------------|---------------------------------|------------------------------------
Immutability    | IMMUTABILITY_VIOLATION          | ORM update of a locked record

Overtime-limit breaches and negative net pay are NOT exceptions. They are
data on the calculation record (warnings and review reasons).
"""


class PayrollEngineError(Exception):
    """
    Base exception for all payroll engine errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PAYROLL_ENGINE_ERROR"


# Configuration exceptions


class ConfigurationError(PayrollEngineError):
    """Base exception for table and employer configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class MissingTaxTableError(ConfigurationError):
    """No tax table exists for the requested year and period type."""

    code: str = "MISSING_TAX_TABLE"

    def __init__(self, year: int, period_type: str, detail: str | None = None):
        self.year = year
        self.period_type = period_type
        self.detail = detail
        message = f"No tax table for year {year}, period type {period_type}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class InvalidBracketConfigurationError(ConfigurationError):
    """A bracket table failed load-time validation."""

    code: str = "INVALID_BRACKET_CONFIGURATION"

    def __init__(self, table: str, row: int | None, reason: str):
        self.table = table
        self.row = row
        self.reason = reason
        where = f"{table}[{row}]" if row is not None else table
        super().__init__(f"Invalid bracket configuration in {where}: {reason}")


class InvalidEmployerConfigError(ConfigurationError):
    """Per-employer configuration is out of range."""

    code: str = "INVALID_EMPLOYER_CONFIG"

    def __init__(self, field: str, value: str, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid employer config {field}={value}: {reason}")


# Calculation exceptions


class CalculationError(PayrollEngineError):
    """Base exception for per-employee calculation errors."""

    code: str = "CALCULATION_ERROR"


class EmployeeDataIncompleteError(CalculationError):
    """Employee record lacks data the calculation needs."""

    code: str = "EMPLOYEE_DATA_INCOMPLETE"

    def __init__(self, employee_id: str, missing_fields: list[str]):
        self.employee_id = employee_id
        self.missing_fields = list(missing_fields)
        super().__init__(
            f"Employee {employee_id} is missing required data: "
            f"{', '.join(self.missing_fields)}"
        )


class CalculationLockedError(CalculationError):
    """Attempted to recompute or modify an APPROVED/PROCESSED calculation."""

    code: str = "CALCULATION_LOCKED"

    def __init__(self, employee_id: str, period_id: str, status: str):
        self.employee_id = employee_id
        self.period_id = period_id
        self.status = status
        super().__init__(
            f"Calculation for employee {employee_id} in period {period_id} "
            f"is {status} and cannot be recomputed"
        )


class CalculationNotFoundError(CalculationError):
    """No calculation exists for the (employee, period) pair."""

    code: str = "CALCULATION_NOT_FOUND"

    def __init__(self, employee_id: str, period_id: str):
        self.employee_id = employee_id
        self.period_id = period_id
        super().__init__(
            f"No calculation for employee {employee_id} in period {period_id}"
        )


class InvalidCalculationTransitionError(CalculationError):
    """Calculation status change is not allowed from its current status."""

    code: str = "INVALID_CALCULATION_TRANSITION"

    def __init__(self, employee_id: str, from_status: str, to_status: str):
        self.employee_id = employee_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Cannot move calculation for employee {employee_id} "
            f"from {from_status} to {to_status}"
        )


# Concurrency exceptions


class ConcurrencyError(PayrollEngineError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class DuplicateCalculationInFlightError(ConcurrencyError):
    """
    A calculation for the same (employee, period) is already running.

    The caller must retry later. The engine never retries automatically.
    """

    code: str = "DUPLICATE_CALCULATION_IN_FLIGHT"

    def __init__(self, employee_id: str, period_id: str):
        self.employee_id = employee_id
        self.period_id = period_id
        super().__init__(
            f"A calculation for employee {employee_id} in period "
            f"{period_id} is already in flight"
        )


# Period exceptions


class PeriodError(PayrollEngineError):
    """Base exception for payroll period errors."""

    code: str = "PERIOD_ERROR"


class PeriodNotFoundError(PeriodError):
    """Payroll period with the given id does not exist."""

    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, period_id: str):
        self.period_id = period_id
        super().__init__(f"Payroll period not found: {period_id}")


class PeriodClosedError(PeriodError):
    """Any write attempted against a CLOSED period."""

    code: str = "PERIOD_CLOSED"

    def __init__(self, period_code: str, operation: str):
        self.period_code = period_code
        self.operation = operation
        super().__init__(
            f"Cannot {operation}: payroll period {period_code} is closed"
        )


class PeriodNotOpenError(PeriodError):
    """Calculation write attempted after the period left OPEN/CALCULATED."""

    code: str = "PERIOD_NOT_OPEN"

    def __init__(self, period_code: str, status: str):
        self.period_code = period_code
        self.status = status
        super().__init__(
            f"Payroll period {period_code} is {status}; "
            "calculations can no longer be written"
        )


class InvalidPeriodTransitionError(PeriodError):
    """Period status change out of the forward-only order."""

    code: str = "INVALID_PERIOD_TRANSITION"

    def __init__(self, period_code: str, from_status: str, to_status: str):
        self.period_code = period_code
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Cannot move payroll period {period_code} "
            f"from {from_status} to {to_status}"
        )


class InvalidPeriodDefinitionError(PeriodError):
    """Period code, date ordering or duration is invalid."""

    code: str = "INVALID_PERIOD_DEFINITION"

    def __init__(self, period_code: str, reason: str):
        self.period_code = period_code
        self.reason = reason
        super().__init__(f"Invalid payroll period {period_code}: {reason}")


class PeriodOverlapError(PeriodError):
    """New period overlaps an existing period of the same type."""

    code: str = "PERIOD_OVERLAP"

    def __init__(self, new_period_code: str, existing_period_code: str):
        self.new_period_code = new_period_code
        self.existing_period_code = existing_period_code
        super().__init__(
            f"Payroll period {new_period_code} overlaps "
            f"existing period {existing_period_code}"
        )


class ApprovalBlockedError(PeriodError):
    """Base exception for approval preconditions that are not met."""

    code: str = "APPROVAL_BLOCKED"


class UnresolvedReviewsPendingError(ApprovalBlockedError):
    """Period approval attempted while calculations await review."""

    code: str = "UNRESOLVED_REVIEWS_PENDING"

    def __init__(self, period_code: str, employee_ids: list[str]):
        self.period_code = period_code
        self.employee_ids = sorted(employee_ids)
        super().__init__(
            f"Cannot approve period {period_code}: "
            f"{len(self.employee_ids)} calculation(s) require review "
            f"({', '.join(self.employee_ids)})"
        )


class CalculationsPendingError(ApprovalBlockedError):
    """Period approval attempted while calculations were never produced."""

    code: str = "CALCULATIONS_PENDING"

    def __init__(self, period_code: str, employee_ids: list[str]):
        self.period_code = period_code
        self.employee_ids = sorted(employee_ids)
        super().__init__(
            f"Cannot approve period {period_code}: "
            f"{len(self.employee_ids)} calculation(s) still pending "
            f"({', '.join(self.employee_ids)})"
        )


class NoCalculationsError(ApprovalBlockedError):
    """Period approval attempted on a period with no calculations."""

    code: str = "NO_CALCULATIONS"

    def __init__(self, period_code: str):
        self.period_code = period_code
        super().__init__(f"Cannot approve period {period_code}: no calculations")


# Immutability exceptions


class ImmutabilityError(PayrollEngineError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted ORM update of an approved calculation or closed period."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
