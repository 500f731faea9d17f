"""Engine settings read from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from sqlalchemy.orm import Session, sessionmaker

from payroll_config.repository import DEFAULT_TABLES_DIR
from payroll_kernel import logging_config
from payroll_kernel.db.engine import get_session_factory, init_engine_from_url

DEFAULT_MAX_WORKERS = 4


@dataclass(frozen=True)
class EngineSettings:
    """
    Process-level settings shared by the database, logging and batch layers.

        settings = EngineSettings.from_env()
        settings.configure_logging()
        session_factory = settings.init_database()
        runner = PayrollBatchRunner.from_settings(
            PayrollLifecycleService(session_factory), settings
        )
    """

    database_url: str = "sqlite:///payroll.db"
    tables_dir: Path = DEFAULT_TABLES_DIR
    max_workers: int = DEFAULT_MAX_WORKERS
    log_level: str = "INFO"

    def __post_init__(self):
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if self.log_level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level {self.log_level!r}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> EngineSettings:
        """
        Build settings from PAYROLL_* environment variables.

        PAYROLL_DATABASE_URL, PAYROLL_TABLES_DIR, PAYROLL_MAX_WORKERS,
        PAYROLL_LOG_LEVEL.  Unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        return cls(
            database_url=env.get("PAYROLL_DATABASE_URL", cls.database_url),
            tables_dir=Path(env["PAYROLL_TABLES_DIR"]) if env.get("PAYROLL_TABLES_DIR")
            else DEFAULT_TABLES_DIR,
            max_workers=int(env.get("PAYROLL_MAX_WORKERS", DEFAULT_MAX_WORKERS)),
            log_level=env.get("PAYROLL_LOG_LEVEL", cls.log_level).upper(),
        )

    def configure_logging(self, stream: Any = None) -> None:
        """Install the JSON handler on the payroll loggers at ``log_level``."""
        logging_config.configure_logging(level=self.log_level, stream=stream)

    def init_database(self) -> sessionmaker[Session]:
        """Initialize the engine for ``database_url`` and return its session factory."""
        init_engine_from_url(self.database_url)
        return get_session_factory()
