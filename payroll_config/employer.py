"""
Per-employer payroll configuration.

Housing-fund rates default to the tax table when left unset. The work-risk
rate comes from the employer's IMSS risk classification and must lie in
[0.5, 7.5] percent. The zone selects which official minimum wage applies
(general or northern border free zone).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any

from payroll_config.loader import load_yaml_file, parse_decimal
from payroll_config.schema import OfficialValues
from payroll_kernel.exceptions import InvalidEmployerConfigError
from payroll_kernel.logging_config import get_logger

logger = get_logger("config.employer")

MIN_WORK_RISK_RATE = Decimal("0.5")
MAX_WORK_RISK_RATE = Decimal("7.5")
VALID_ZONES = {"general", "northern_border"}


@dataclass(frozen=True)
class EmployerConfig:
    """
    Configuration for one employer (registro patronal).

        config = EmployerConfig(employer_id="ACME", work_risk_rate_percent=Decimal("2.59"))
    """

    employer_id: str = "default"
    work_risk_rate_percent: Decimal = Decimal("0.54355")
    housing_employee_rate_percent: Decimal | None = None
    housing_employer_rate_percent: Decimal | None = None
    retirement_savings_rate_percent: Decimal | None = None
    zone: str = "general"

    def __post_init__(self):
        rate = self.work_risk_rate_percent
        if not MIN_WORK_RISK_RATE <= rate <= MAX_WORK_RISK_RATE:
            raise InvalidEmployerConfigError(
                "work_risk_rate_percent",
                str(rate),
                f"must be within [{MIN_WORK_RISK_RATE}, {MAX_WORK_RISK_RATE}]",
            )
        for name in (
            "housing_employee_rate_percent",
            "housing_employer_rate_percent",
            "retirement_savings_rate_percent",
        ):
            value = getattr(self, name)
            if value is not None and not Decimal("0") <= value <= Decimal("100"):
                raise InvalidEmployerConfigError(name, str(value), "must be within [0, 100]")
        if self.zone not in VALID_ZONES:
            raise InvalidEmployerConfigError(
                "zone", self.zone, f"must be one of {sorted(VALID_ZONES)}"
            )
        logger.debug(
            "employer_config_initialized",
            extra={
                "employer_id": self.employer_id,
                "work_risk_rate_percent": str(rate),
                "zone": self.zone,
            },
        )

    def minimum_wage(self, official_values: OfficialValues) -> Decimal:
        """Daily minimum wage of the employer's zone."""
        if self.zone == "northern_border":
            return official_values.minimum_wage_border
        return official_values.minimum_wage_general

    @classmethod
    def with_defaults(cls) -> EmployerConfig:
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EmployerConfig:
        def optional(key: str) -> Decimal | None:
            value = data.get(key)
            return None if value is None else parse_decimal(value)

        kwargs: dict[str, Any] = {
            "housing_employee_rate_percent": optional("housing_employee_rate_percent"),
            "housing_employer_rate_percent": optional("housing_employer_rate_percent"),
            "retirement_savings_rate_percent": optional("retirement_savings_rate_percent"),
        }
        if "employer_id" in data:
            kwargs["employer_id"] = str(data["employer_id"])
        if "work_risk_rate_percent" in data:
            kwargs["work_risk_rate_percent"] = parse_decimal(data["work_risk_rate_percent"])
        if "zone" in data:
            kwargs["zone"] = data["zone"]
        return cls(**kwargs)


def load_employer_config(path: Path | str) -> EmployerConfig:
    """Load an EmployerConfig from a YAML mapping file."""
    return EmployerConfig.from_dict(load_yaml_file(Path(path)))
