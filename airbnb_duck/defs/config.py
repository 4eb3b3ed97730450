"""Configuration management for the airbnb-duck pipeline.

This module provides validated configuration with clear error messages.
All configuration is loaded from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import dagster as dg

from airbnb_duck.base import CastPolicy
from airbnb_duck.exceptions import ConfigurationError
from airbnb_duck.sources import RAW_TABLES

# Resolve paths relative to the working directory the pipeline is launched from
DATA_DIR = Path("data")
DEFAULT_RAW_DIR = DATA_DIR / "raw"
DEFAULT_DB_PATH = DATA_DIR / "output" / "airbnb.duckdb"
DEFAULT_SCHEDULE = "0 6 * * *"


@dataclass(frozen=True)
class PipelineConfig:
    """Validated pipeline configuration.

    Attributes:
        raw_dir: Directory holding <table>.csv raw extracts
        duckdb_path: DuckDB database file for materialized tables (":memory:" allowed)
        schema: Schema namespace for materialized tables
        cast_policy: Default cast policy for staging models
        seeded_tables: Raw tables read from packaged seeds instead of raw_dir
        report_path: Optional path for the JSON run report
        schedule: Cron expression for the daily schedule
    """

    raw_dir: Path = DEFAULT_RAW_DIR
    duckdb_path: Path = DEFAULT_DB_PATH
    schema: str = "main"
    cast_policy: CastPolicy = CastPolicy.LENIENT
    seeded_tables: tuple[str, ...] = field(default=("full_moon_dates",))
    report_path: Path | None = None
    schedule: str = DEFAULT_SCHEDULE

    def validate(self) -> None:
        """Validate configuration at startup.

        Raises:
            ConfigurationError: If any configuration is invalid
        """
        if not isinstance(self.cast_policy, CastPolicy):
            raise ConfigurationError(
                f"cast_policy must be one of {[p.value for p in CastPolicy]}, "
                f"got: {self.cast_policy!r}"
            )

        if not self.schema or not self.schema.replace("_", "").isalnum():
            raise ConfigurationError(
                f"schema must be a non-empty identifier, got: {self.schema!r}"
            )

        unknown = sorted(set(self.seeded_tables) - set(RAW_TABLES))
        if unknown:
            raise ConfigurationError(
                f"seeded_tables contains unknown raw tables: {unknown}. "
                f"Known tables: {list(RAW_TABLES)}"
            )

        # Check DuckDB path parent is writable (file may not exist yet)
        if str(self.duckdb_path) != ":memory:":
            parent = self.duckdb_path.parent
            if parent.exists() and not os.access(parent, os.W_OK):
                raise ConfigurationError(f"DuckDB parent directory {parent} is not writable")

        if len(self.schedule.split()) != 5:
            raise ConfigurationError(
                f"schedule must be a five-field cron expression, got: {self.schedule!r}"
            )

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Load and validate configuration from environment variables.

        Environment Variables:
            AIRBNB_DUCK_RAW_DIR: Raw CSV directory (default: data/raw)
            AIRBNB_DUCK_DB_PATH: DuckDB database path (default: data/output/airbnb.duckdb)
            AIRBNB_DUCK_SCHEMA: Schema for materialized tables (default: main)
            AIRBNB_DUCK_CAST_POLICY: lenient or strict (default: lenient)
            AIRBNB_DUCK_SEEDED_TABLES: Comma separated seeded tables (default: full_moon_dates)
            AIRBNB_DUCK_REPORT_PATH: JSON report path (default: unset)
            AIRBNB_DUCK_SCHEDULE: Cron schedule (default: 0 6 * * *)

        Returns:
            Validated configuration object

        Raises:
            ConfigurationError: If configuration is invalid
        """
        policy = os.environ.get("AIRBNB_DUCK_CAST_POLICY", CastPolicy.LENIENT.value)
        try:
            cast_policy = CastPolicy(policy.strip().lower())
        except ValueError as e:
            raise ConfigurationError(
                f"AIRBNB_DUCK_CAST_POLICY must be 'lenient' or 'strict', got: {policy!r}"
            ) from e

        seeded = os.environ.get("AIRBNB_DUCK_SEEDED_TABLES", "full_moon_dates")
        report = os.environ.get("AIRBNB_DUCK_REPORT_PATH")

        config = cls(
            raw_dir=Path(os.environ.get("AIRBNB_DUCK_RAW_DIR", str(DEFAULT_RAW_DIR))),
            duckdb_path=Path(os.environ.get("AIRBNB_DUCK_DB_PATH", str(DEFAULT_DB_PATH))),
            schema=os.environ.get("AIRBNB_DUCK_SCHEMA", "main"),
            cast_policy=cast_policy,
            seeded_tables=tuple(t.strip() for t in seeded.split(",") if t.strip()),
            report_path=Path(report) if report else None,
            schedule=os.environ.get("AIRBNB_DUCK_SCHEDULE", DEFAULT_SCHEDULE),
        )

        # Validate before returning
        config.validate()

        dg.get_dagster_logger(__name__).debug(f"Loaded configuration: {config}")
        return config
