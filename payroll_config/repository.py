"""
Tax Table Repository -- versioned, validated tables keyed by (year, period type).

Responsibility:
    Resolves ``tax_tables_<year>.yaml`` in the tables directory, parses the
    section the period-type strategy points at, validates it, and returns
    an immutable ``TaxTableSet``.  Results are cached per (year, period
    type) for the life of the repository, so a batch loads each table once.

Architecture position:
    Config layer.  Imports kernel exceptions and logging only.

Failure modes:
    - MissingTaxTableError: no file for the year, or the file lacks the
      section the period type needs.
    - InvalidBracketConfigurationError: unreadable YAML, missing keys,
      bad numbers, or any validator error.
    Both are fatal for a whole batch.
"""

from __future__ import annotations

import threading
import time
from decimal import InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from payroll_config.loader import (
    compute_checksum,
    load_yaml_file,
    parse_contributions,
    parse_isr_brackets,
    parse_official_values,
    parse_subsidy_brackets,
)
from payroll_config.schema import TaxTableSet, strategy_for
from payroll_config.validator import (
    TableValidationResult,
    validate_contributions,
    validate_isr_brackets,
    validate_official_values,
    validate_subsidy_brackets,
)
from payroll_kernel.domain.values import PeriodType
from payroll_kernel.exceptions import (
    InvalidBracketConfigurationError,
    MissingTaxTableError,
)
from payroll_kernel.logging_config import get_logger

logger = get_logger("config.tax_tables")

DEFAULT_TABLES_DIR = Path(__file__).parent / "tables"


class TaxTableRepository:
    """Loads and caches TaxTableSets from a directory of yearly YAML files."""

    def __init__(self, tables_dir: Path | str | None = None):
        self._tables_dir = Path(tables_dir) if tables_dir else DEFAULT_TABLES_DIR
        self._cache: dict[tuple[int, PeriodType], TaxTableSet] = {}
        self._lock = threading.Lock()

    @property
    def tables_dir(self) -> Path:
        return self._tables_dir

    def path_for(self, year: int) -> Path:
        return self._tables_dir / f"tax_tables_{year}.yaml"

    def available_years(self) -> list[int]:
        years = []
        for path in self._tables_dir.glob("tax_tables_*.yaml"):
            suffix = path.stem.rsplit("_", 1)[-1]
            if suffix.isdigit():
                years.append(int(suffix))
        return sorted(years)

    def load(self, year: int, period_type: PeriodType | str) -> TaxTableSet:
        """
        Return the validated TaxTableSet for (year, period_type).

        Raises:
            MissingTaxTableError: no table for the pair.
            InvalidBracketConfigurationError: the table failed validation.
        """
        period_type = PeriodType(period_type)
        key = (year, period_type)
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                return cached
            table_set = self._load_uncached(year, period_type)
            self._cache[key] = table_set
            return table_set

    def _load_uncached(self, year: int, period_type: PeriodType) -> TaxTableSet:
        start = time.monotonic()
        strategy = strategy_for(period_type)
        path = self.path_for(year)
        source = path.name

        if not path.is_file():
            logger.error(
                "tax_table_missing",
                extra={"year": year, "period_type": period_type.value, "path": str(path)},
            )
            raise MissingTaxTableError(year, period_type.value, f"{source} not found")

        try:
            document = load_yaml_file(path)
        except yaml.YAMLError as exc:
            raise InvalidBracketConfigurationError(source, None, f"unreadable YAML: {exc}") from exc

        isr_rows = (document.get("isr") or {}).get(strategy.table_key)
        if not isr_rows:
            raise MissingTaxTableError(
                year, period_type.value, f"{source} has no isr.{strategy.table_key} table"
            )
        subsidy_rows = (document.get("subsidy") or {}).get(strategy.table_key) or []

        try:
            table_set = self._parse(document, year, period_type, isr_rows, subsidy_rows, source)
        except (KeyError, TypeError, ValueError, InvalidOperation) as exc:
            raise InvalidBracketConfigurationError(
                source, None, f"malformed table: {exc!r}"
            ) from exc

        logger.info(
            "tax_table_loaded",
            extra={
                "year": year,
                "period_type": period_type.value,
                "table_key": strategy.table_key,
                "isr_brackets": len(table_set.isr_brackets),
                "subsidy_brackets": len(table_set.subsidy_brackets),
                "checksum": table_set.checksum,
                "duration_ms": round((time.monotonic() - start) * 1000, 2),
            },
        )
        return table_set

    def _parse(
        self,
        document: dict[str, Any],
        year: int,
        period_type: PeriodType,
        isr_rows: list[dict[str, Any]],
        subsidy_rows: list[dict[str, Any]],
        source: str,
    ) -> TaxTableSet:
        strategy = strategy_for(period_type)
        isr_brackets = parse_isr_brackets(isr_rows)
        subsidy_brackets = parse_subsidy_brackets(subsidy_rows)
        contributions = parse_contributions(document["contributions"])
        official_values = parse_official_values(document["official_values"])

        for result in (
            validate_isr_brackets(f"isr.{strategy.table_key}", isr_brackets),
            validate_subsidy_brackets(f"subsidy.{strategy.table_key}", subsidy_brackets),
            validate_contributions("contributions", contributions),
            validate_official_values("official_values", official_values),
        ):
            self._raise_on_errors(result, source)

        return TaxTableSet(
            year=year,
            period_type=period_type,
            strategy=strategy,
            isr_brackets=isr_brackets,
            subsidy_brackets=subsidy_brackets,
            contributions=contributions,
            official_values=official_values,
            checksum=compute_checksum(document),
            source=source,
        )

    @staticmethod
    def _raise_on_errors(result: TableValidationResult, source: str) -> None:
        for warning in result.warnings:
            logger.warning(
                "tax_table_warning",
                extra={"source": source, "table": warning.table, "row": warning.row,
                       "reason": warning.reason},
            )
        if not result.is_valid:
            first = result.errors[0]
            logger.error(
                "tax_table_invalid",
                extra={
                    "source": source,
                    "error_count": len(result.errors),
                    "errors": [str(e) for e in result.errors],
                },
            )
            raise InvalidBracketConfigurationError(first.table, first.row, first.reason)
