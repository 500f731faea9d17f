"""Services for the payroll kernel (write side)."""

from payroll_kernel.services.calculation_guard import CalculationGuard, PeriodLockRegistry
from payroll_kernel.services.lifecycle_service import PayrollLifecycleService
from payroll_kernel.services.period_service import PayrollPeriodService

__all__ = [
    "CalculationGuard",
    "PayrollLifecycleService",
    "PayrollPeriodService",
    "PeriodLockRegistry",
]
