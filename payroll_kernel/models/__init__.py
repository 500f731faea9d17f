"""ORM models for the payroll engine."""

from payroll_kernel.models.payroll_calculation import PayrollCalculationModel
from payroll_kernel.models.payroll_period import PayrollPeriodModel

__all__ = ["PayrollCalculationModel", "PayrollPeriodModel"]
