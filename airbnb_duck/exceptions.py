"""Custom exceptions for the airbnb-duck pipeline.

These exceptions provide better error messages and help distinguish between
different failure modes in the transformation pipeline:

- Graph errors (cycles, unknown references) abort before anything runs
- Data validation errors fail a single model and skip its dependents
- Materialization errors fail a single model and leave the prior table intact
"""

from __future__ import annotations

from typing import Iterable


class PipelineError(Exception):
    """Base exception for all airbnb-duck pipeline errors."""

    pass


class ConfigurationError(PipelineError):
    """Raised when configuration is invalid or incomplete.

    Examples:
    - Environment variables have invalid values
    - Raw data directory doesn't exist
    - Two models registered under the same name
    """

    pass


class DuplicateModelError(ConfigurationError):
    """Raised when a model name is registered twice or shadows a raw table."""

    def __init__(self, name: str, reason: str = "is already registered"):
        self.name = name
        super().__init__(f"Model '{name}' {reason}")


# -----------------------------------------------------------------------------
# Graph construction
# -----------------------------------------------------------------------------


class GraphError(PipelineError):
    """Raised when the model reference graph cannot be ordered."""

    pass


class CycleError(GraphError):
    """Raised when model references form a cycle.

    Attributes:
        models: Every model that participates in a cycle, sorted by name
    """

    def __init__(self, models: Iterable[str]):
        self.models = sorted(models)
        super().__init__(
            f"Circular model dependency detected between: {', '.join(self.models)}"
        )


class UnknownReferenceError(GraphError):
    """Raised when a model references a name that is neither a model nor a raw table."""

    def __init__(self, model: str, reference: str):
        self.model = model
        self.reference = reference
        super().__init__(
            f"Model '{model}' references '{reference}', which is neither a "
            f"registered model nor a declared raw table"
        )


# -----------------------------------------------------------------------------
# Data errors (fatal for one model)
# -----------------------------------------------------------------------------


class DataValidationError(PipelineError):
    """Base exception for data validation errors.

    Args:
        model_name: Name of the model where the error occurred
        message: Detailed error message
    """

    def __init__(self, model_name: str, message: str):
        self.model_name = model_name
        super().__init__(f"[{model_name}] {message}")


class MissingTableError(DataValidationError):
    """Raised when a raw or materialized table doesn't exist.

    Automatically lists available tables to help debugging.
    """

    def __init__(self, model_name: str, table_name: str, available_tables: list[str]):
        self.table_name = table_name
        self.available_tables = available_tables
        message = (
            f"Table '{table_name}' not found. "
            f"Available tables: {sorted(available_tables)}"
        )
        super().__init__(model_name, message)


class MissingColumnError(DataValidationError):
    """Raised when required columns are missing from a raw table."""

    def __init__(
        self, model_name: str, missing_columns: set[str], available_columns: list[str]
    ):
        self.missing_columns = missing_columns
        self.available_columns = available_columns
        message = (
            f"Missing required columns: {sorted(missing_columns)}. "
            f"Available columns: {sorted(available_columns)}"
        )
        super().__init__(model_name, message)


class CoercionError(DataValidationError):
    """Raised under the strict cast policy when values can't be converted.

    Under the lenient policy the same condition only nulls the value.
    """

    def __init__(self, model_name: str, failures: dict[str, int]):
        self.failures = failures
        detail = ", ".join(f"{col}: {count}" for col, count in sorted(failures.items()))
        super().__init__(model_name, f"Strict cast failed for column(s) {detail}")


class SchemaValidationError(DataValidationError):
    """Raised when a model output fails its Pandera schema (blocking check)."""

    def __init__(self, model_name: str, schema_name: str, detail: str):
        self.schema_name = schema_name
        super().__init__(model_name, f"Output failed {schema_name}: {detail}")


# -----------------------------------------------------------------------------
# Execution errors
# -----------------------------------------------------------------------------


class TransformError(PipelineError):
    """Raised when a model's transform function fails unexpectedly."""

    def __init__(self, model_name: str, message: str):
        self.model_name = model_name
        super().__init__(f"[{model_name}] Transform failed: {message}")


class MaterializationError(PipelineError):
    """Raised when a model output can't be persisted.

    The previously materialized table version is left untouched.
    """

    def __init__(self, table_name: str, message: str):
        self.table_name = table_name
        super().__init__(f"Failed to materialize '{table_name}': {message}")
