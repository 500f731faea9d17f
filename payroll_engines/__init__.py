"""
Module: payroll_engines
Responsibility:
    Re-exports the pure payroll calculation engines.  The canonical import
    surface for the lifecycle services and the batch runner.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import payroll_kernel.domain, payroll_kernel.exceptions,
    payroll_kernel.logging_config and payroll_config.schema.

Invariants enforced:
    - Engines never read the clock; dates are explicit parameters.
    - Decimal-only arithmetic; floats are forbidden.
    - Identical inputs always produce identical outputs.
"""

from payroll_engines.assembler import PayrollCalculator, assemble
from payroll_engines.brackets import (
    IsrResult,
    bracket_tax,
    compute_isr,
    find_income_tax_bracket,
    subsidy_for,
)
from payroll_engines.deductions import compute_deductions, contribution_base
from payroll_engines.employer import compute_employer_contributions
from payroll_engines.income import aggregate_income
from payroll_engines.sdi import compute_sdi, vacation_days_for, years_of_service

__all__ = [
    "IsrResult",
    "PayrollCalculator",
    "aggregate_income",
    "assemble",
    "bracket_tax",
    "compute_deductions",
    "compute_employer_contributions",
    "compute_isr",
    "compute_sdi",
    "contribution_base",
    "find_income_tax_bracket",
    "subsidy_for",
    "vacation_days_for",
    "years_of_service",
]
