"""Transformation executor.

Runs registered models in dependency order. Each model reads its inputs (raw
tables from the provider, upstream models back from the materializer), runs
its transform, passes its blocking schema check and is materialized before
any dependent model starts.

A model that fails is recorded as failed and every model downstream of it is
skipped. Models on independent branches still run.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import dagster as dg
import duckdb
import pandera.polars as pa
import polars as pl

from airbnb_duck.base import CastPolicy, Layer, Model, ModelContext
from airbnb_duck.exceptions import PipelineError, SchemaValidationError, TransformError
from airbnb_duck.materializer import DuckDBMaterializer
from airbnb_duck.registry import ModelRegistry
from airbnb_duck.resolver import DependencyResolver
from airbnb_duck.sources import RawTableProvider

logger = dg.get_dagster_logger(__name__)


class ModelStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ModelRun:
    """Outcome of one model in one pipeline run.

    Attributes:
        name: Model name
        layer: Conformance stage
        status: success, failed or skipped
        rows_out: Rows materialized
        rows_dropped: Rows removed for a missing required field
        coercion_failures: Values nulled per column under the lenient policy
        duration_ms: Wall time spent on the model
        error: Failure message, or the failed upstream for skipped models
        metadata: Model-specific metadata recorded by the transform
    """

    name: str
    layer: Layer
    status: ModelStatus
    rows_out: int = 0
    rows_dropped: int = 0
    coercion_failures: dict[str, int] = field(default_factory=dict)
    duration_ms: float = 0.0
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "layer": self.layer.value,
            "status": self.status.value,
            "rows_out": self.rows_out,
            "rows_dropped": self.rows_dropped,
            "coercion_failures": dict(self.coercion_failures),
            "duration_ms": round(self.duration_ms, 2),
            "error": self.error,
        }


class TransformationExecutor:
    """Execute a registry of models against a provider and a materializer.

    Example:
        executor = TransformationExecutor(registry, provider, materializer)
        runs = executor.execute()
        failed = [r.name for r in runs if r.status == ModelStatus.FAILED]
    """

    def __init__(
        self,
        registry: ModelRegistry,
        provider: RawTableProvider,
        materializer: DuckDBMaterializer,
        default_cast_policy: CastPolicy = CastPolicy.LENIENT,
    ):
        self.registry = registry
        self.provider = provider
        self.materializer = materializer
        self.default_cast_policy = default_cast_policy
        self.resolver = DependencyResolver(registry)

    def plan(self) -> list[str]:
        """Execution order.

        Raises:
            GraphError: If references are unknown or cyclic
        """
        return self.resolver.resolve()

    def execute(self, order: list[str] | None = None) -> list[ModelRun]:
        """Run every model once, in dependency order."""
        order = order if order is not None else self.plan()
        runs: list[ModelRun] = []
        blocked: dict[str, str] = {}

        for name in order:
            m = self.registry.get(name)
            failed_upstream = [ref for ref in m.upstream if ref in blocked]
            if failed_upstream:
                cause = blocked[failed_upstream[0]]
                logger.warning(f"Skipping {name}: upstream {cause} failed")
                blocked[name] = cause
                runs.append(
                    ModelRun(
                        name=name,
                        layer=m.layer,
                        status=ModelStatus.SKIPPED,
                        error=f"Upstream model '{cause}' failed",
                    )
                )
                continue

            run = self.run_model(m)
            if run.status != ModelStatus.SUCCESS:
                blocked[name] = name
            runs.append(run)

        return runs

    def run_model(self, m: Model) -> ModelRun:
        """Run one model whose upstream models have already succeeded."""
        context = ModelContext(
            model_name=m.name,
            cast_policy=m.cast_policy or self.default_cast_policy,
            log=logger,
        )
        start_time = time.perf_counter()

        try:
            inputs = self._load_inputs(m)
            output = self._transform(m, context, inputs)
            output = self._check_schema(m, output)
            rows_out = self.materializer.materialize(m.name, output)
        except PipelineError as e:
            return self._failed(m, context, start_time, e)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.info(f"[{m.name}] {rows_out:,} rows in {elapsed_ms:.1f}ms")
        return ModelRun(
            name=m.name,
            layer=m.layer,
            status=ModelStatus.SUCCESS,
            rows_out=rows_out,
            rows_dropped=context.rows_dropped,
            coercion_failures=dict(context.coercion_failures),
            duration_ms=elapsed_ms,
            metadata=dict(context.metadata),
        )

    def _load_inputs(self, m: Model) -> dict[str, pl.DataFrame]:
        inputs = {}
        for ref in m.upstream:
            try:
                if self.registry.is_raw(ref):
                    inputs[ref] = self.provider.get_raw_table(ref)
                else:
                    inputs[ref] = self.materializer.read(ref, model_name=m.name)
            except (duckdb.Error, pl.exceptions.PolarsError) as e:
                raise TransformError(m.name, f"loading {ref}: {type(e).__name__}: {e}") from e
        return inputs

    def _transform(
        self, m: Model, context: ModelContext, inputs: dict[str, pl.DataFrame]
    ) -> pl.DataFrame:
        try:
            output = m(context, **inputs)
        except PipelineError:
            raise
        except (duckdb.Error, pl.exceptions.PolarsError, KeyError, TypeError, ValueError) as e:
            raise TransformError(m.name, f"{type(e).__name__}: {e}") from e

        if not isinstance(output, pl.DataFrame):
            raise TransformError(
                m.name, f"expected a polars DataFrame, got {type(output).__name__}"
            )
        return output

    def _check_schema(self, m: Model, output: pl.DataFrame) -> pl.DataFrame:
        """Blocking Pandera check; the coerced frame is what gets materialized."""
        if m.schema is None:
            return output
        try:
            return m.schema.validate(output, lazy=True)
        except (pa.errors.SchemaError, pa.errors.SchemaErrors) as e:
            raise SchemaValidationError(m.name, m.schema.__name__, str(e)) from e

    def _failed(
        self, m: Model, context: ModelContext, start_time: float, error: PipelineError
    ) -> ModelRun:
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.error(f"[{m.name}] failed: {error}")
        return ModelRun(
            name=m.name,
            layer=m.layer,
            status=ModelStatus.FAILED,
            rows_dropped=context.rows_dropped,
            coercion_failures=dict(context.coercion_failures),
            duration_ms=elapsed_ms,
            error=str(error),
            metadata=dict(context.metadata),
        )
