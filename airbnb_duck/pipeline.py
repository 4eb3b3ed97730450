"""Pipeline entry point: resolve, execute, validate.

    result = run_pipeline(PipelineConfig(raw_dir=Path("data/raw")))
    if not result.success:
        print(result.failed_models)
    for row in result.validation_report():
        print(row["rule_name"], row["status"])

The dependency graph is resolved before anything runs, so cycles and unknown
references abort the run without touching the database.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import dagster as dg

from airbnb_duck.defs import STANDING_RULES, build_registry
from airbnb_duck.defs.config import PipelineConfig
from airbnb_duck.executor import ModelRun, ModelStatus, TransformationExecutor
from airbnb_duck.materializer import DuckDBMaterializer
from airbnb_duck.registry import ModelRegistry
from airbnb_duck.resolver import DependencyResolver
from airbnb_duck.sources import CsvRawTableProvider, RawTableProvider
from airbnb_duck.validation import ValidationResult, ValidationRule, ValidationRunner, ValidationStatus

logger = dg.get_dagster_logger(__name__)


@dataclass
class PipelineResult:
    """Per-model outcomes and validation results of one run."""

    models: list[ModelRun]
    validations: list[ValidationResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True when every model materialized."""
        return all(r.status == ModelStatus.SUCCESS for r in self.models)

    @property
    def failed_models(self) -> list[str]:
        return [r.name for r in self.models if r.status == ModelStatus.FAILED]

    @property
    def skipped_models(self) -> list[str]:
        return [r.name for r in self.models if r.status == ModelStatus.SKIPPED]

    @property
    def quality_passed(self) -> bool:
        """True when no validation rule found violating rows."""
        return not any(v.status == ValidationStatus.FAILED for v in self.validations)

    def model(self, name: str) -> ModelRun:
        for run in self.models:
            if run.name == name:
                return run
        raise KeyError(name)

    def validation_report(self) -> list[dict[str, Any]]:
        return [v.to_dict() for v in self.validations]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "quality_passed": self.quality_passed,
            "models": [r.to_dict() for r in self.models],
            "validations": self.validation_report(),
        }

    def write_report(self, path: str | Path) -> Path:
        """Write the run report as JSON, creating parent directories."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2))
        logger.info(f"Wrote run report to {path}")
        return path


def run_pipeline(
    config: PipelineConfig | None = None,
    *,
    provider: RawTableProvider | None = None,
    registry: ModelRegistry | None = None,
    rules: Iterable[ValidationRule] | None = None,
    materializer: DuckDBMaterializer | None = None,
) -> PipelineResult:
    """Run every model once and then every validation rule.

    Args:
        config: Pipeline configuration (default: loaded from the environment)
        provider: Raw table source (default: CSV files under config.raw_dir)
        registry: Models to run (default: the Airbnb models)
        rules: Validation rules (default: the standing rules)
        materializer: Open materializer to write to; left open when passed in

    Returns:
        PipelineResult with per-model outcomes and the validation report

    Raises:
        ConfigurationError: If the configuration is invalid
        GraphError: If the model references are unknown or cyclic
    """
    if config is None:
        config = PipelineConfig.from_env()
    else:
        config.validate()
    registry = build_registry() if registry is None else registry
    rules = list(STANDING_RULES if rules is None else rules)

    order = DependencyResolver(registry).resolve()
    logger.info(f"Execution plan: {' -> '.join(order)}")

    provider = provider or CsvRawTableProvider(config.raw_dir, config.seeded_tables)
    owned = materializer is None
    store = materializer or DuckDBMaterializer(config.duckdb_path, config.schema)

    try:
        executor = TransformationExecutor(registry, provider, store, config.cast_policy)
        runs = executor.execute(order)

        not_materialized = [r.name for r in runs if r.status != ModelStatus.SUCCESS]
        validations = ValidationRunner(store).run(rules, skip_tables=not_materialized)
    finally:
        if owned:
            store.close()

    result = PipelineResult(models=runs, validations=validations)
    logger.info(
        f"Pipeline finished: {len(runs) - len(not_materialized)}/{len(runs)} models succeeded, "
        f"{sum(v.status == ValidationStatus.FAILED for v in validations)} of {len(validations)} rules failed"
    )

    if config.report_path:
        result.write_report(config.report_path)
    return result
