"""
Tax Table Loader (``payroll_config.loader``).

Responsibility
--------------
Reads a yearly YAML tables file and parses its sections into the frozen
dataclasses of ``payroll_config.schema``.  Parsing only: structural rules
(contiguity, rate ranges, unbounded top bracket) live in
``payroll_config.validator``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Non-numeric amounts  -> ``decimal.InvalidOperation`` propagates.

The repository turns all of these into typed configuration errors.

Audit relevance
---------------
``compute_checksum`` gives every loaded TaxTableSet a deterministic
SHA-256 identity, so a calculation can be traced back to the exact table
content that produced it.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from payroll_config.schema import (
    ContributionComponent,
    ContributionRates,
    IncomeTaxBracket,
    OfficialValues,
    SubsidyBracket,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any) -> Decimal:
    """Parse a YAML scalar into a Decimal without passing through float."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Cannot parse amount from {value!r}")
    return Decimal(str(value))


def _optional_decimal(value: Any) -> Decimal | None:
    return None if value is None else parse_decimal(value)


def parse_isr_brackets(rows: list[dict[str, Any]]) -> tuple[IncomeTaxBracket, ...]:
    return tuple(
        IncomeTaxBracket(
            lower_limit=parse_decimal(row["lower_limit"]),
            upper_limit=_optional_decimal(row.get("upper_limit")),
            fixed_fee=parse_decimal(row["fixed_fee"]),
            rate_percent=parse_decimal(row["rate_percent"]),
        )
        for row in rows
    )


def parse_subsidy_brackets(rows: list[dict[str, Any]]) -> tuple[SubsidyBracket, ...]:
    return tuple(
        SubsidyBracket(
            lower_limit=parse_decimal(row["lower_limit"]),
            upper_limit=_optional_decimal(row.get("upper_limit")),
            subsidy_amount=parse_decimal(row["subsidy_amount"]),
        )
        for row in rows
    )


def parse_contributions(data: dict[str, Any]) -> ContributionRates:
    """
    Parse the ``contributions`` section.

    ``housing`` and ``retirement_savings`` default to 5 % / 5 % and 2 %
    when a table omits them.
    """
    components = tuple(
        ContributionComponent(
            name=row["name"],
            employee_rate_percent=parse_decimal(row["employee_rate_percent"]),
            employer_rate_percent=parse_decimal(row["employer_rate_percent"]),
        )
        for row in data["imss"]
    )
    housing = data.get("housing", {})
    retirement = data.get("retirement_savings", {})
    return ContributionRates(
        imss_components=components,
        housing_employee_rate_percent=parse_decimal(
            housing.get("employee_rate_percent", "5.00")
        ),
        housing_employer_rate_percent=parse_decimal(
            housing.get("employer_rate_percent", "5.00")
        ),
        retirement_savings_employer_rate_percent=parse_decimal(
            retirement.get("employer_rate_percent", "2.00")
        ),
    )


def parse_official_values(data: dict[str, Any]) -> OfficialValues:
    return OfficialValues(
        uma_daily=parse_decimal(data["uma_daily"]),
        uma_monthly=parse_decimal(data["uma_monthly"]),
        uma_annual=parse_decimal(data["uma_annual"]),
        minimum_wage_general=parse_decimal(data["minimum_wage_general"]),
        minimum_wage_border=parse_decimal(data["minimum_wage_border"]),
        sdi_cap_multiplier=parse_decimal(data.get("sdi_cap_multiplier", "25")),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
