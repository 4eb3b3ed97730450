"""Resource registration for the airbnb-duck pipeline.

AirbnbPipelineResource carries the pipeline configuration into Dagster runs:
- Where raw CSV extracts are read from
- Which DuckDB file and schema the models are materialized to
- Which cast policy staging applies

Defaults come from the same environment variables PipelineConfig.from_env()
reads, so the CLI and Dagster runs see the same configuration.
"""

import os
from pathlib import Path
from typing import Optional

import dagster as dg

from airbnb_duck.base import CastPolicy
from airbnb_duck.defs.config import DEFAULT_DB_PATH, DEFAULT_RAW_DIR, PipelineConfig
from airbnb_duck.exceptions import ConfigurationError
from airbnb_duck.pipeline import PipelineResult, run_pipeline

# Paths (can be overridden via environment variables)
RAW_DIR = os.environ.get("AIRBNB_DUCK_RAW_DIR", str(DEFAULT_RAW_DIR))
DUCKDB_PATH = os.environ.get("AIRBNB_DUCK_DB_PATH", str(DEFAULT_DB_PATH))
DB_SCHEMA = os.environ.get("AIRBNB_DUCK_SCHEMA", "main")
CAST_POLICY = os.environ.get("AIRBNB_DUCK_CAST_POLICY", CastPolicy.LENIENT.value)
REPORT_PATH = os.environ.get("AIRBNB_DUCK_REPORT_PATH")
SEEDED_TABLES = [
    t.strip()
    for t in os.environ.get("AIRBNB_DUCK_SEEDED_TABLES", "full_moon_dates").split(",")
    if t.strip()
]


class AirbnbPipelineResource(dg.ConfigurableResource):
    """Runs the airbnb-duck pipeline with run-configurable settings."""

    raw_dir: str = RAW_DIR
    duckdb_path: str = DUCKDB_PATH
    db_schema: str = DB_SCHEMA
    cast_policy: str = CAST_POLICY
    seeded_tables: list[str] = SEEDED_TABLES
    report_path: Optional[str] = REPORT_PATH

    def get_config(self) -> PipelineConfig:
        """Build a validated PipelineConfig from the resource fields.

        Raises:
            ConfigurationError: If any field is invalid
        """
        try:
            cast_policy = CastPolicy(self.cast_policy.strip().lower())
        except ValueError as e:
            raise ConfigurationError(
                f"cast_policy must be 'lenient' or 'strict', got: {self.cast_policy!r}"
            ) from e

        config = PipelineConfig(
            raw_dir=Path(self.raw_dir),
            duckdb_path=Path(self.duckdb_path),
            schema=self.db_schema,
            cast_policy=cast_policy,
            seeded_tables=tuple(self.seeded_tables),
            report_path=Path(self.report_path) if self.report_path else None,
        )
        config.validate()
        return config

    def run(self) -> PipelineResult:
        return run_pipeline(self.get_config())
