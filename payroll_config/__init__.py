"""
Versioned payroll configuration: tax tables, employer settings, engine settings.

    from payroll_config import TaxTableRepository
    tables = TaxTableRepository().load(2025, "biweekly")
"""

from payroll_config.employer import EmployerConfig, load_employer_config
from payroll_config.repository import TaxTableRepository
from payroll_config.schema import PERIOD_STRATEGIES, TaxTableSet, strategy_for
from payroll_config.settings import EngineSettings

__all__ = [
    "EmployerConfig",
    "EngineSettings",
    "PERIOD_STRATEGIES",
    "TaxTableRepository",
    "TaxTableSet",
    "load_employer_config",
    "strategy_for",
]
