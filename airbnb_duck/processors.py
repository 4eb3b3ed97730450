"""DuckDB processors used by the model transforms.

Processors:
    - StagingProcessor: clean, cast and filter a raw table in one pass
    - DuckDBSQLProcessor: run a model's SQL over its input frames

Both register their polars inputs in an in-memory DuckDB connection and
return polars DataFrames.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import duckdb
import polars as pl

from airbnb_duck.base import CastPolicy
from airbnb_duck.exceptions import CoercionError

if TYPE_CHECKING:
    from airbnb_duck.base import ModelContext


def quote(identifier: str) -> str:
    """Quote a SQL identifier for DuckDB."""
    return '"' + identifier.replace('"', '""') + '"'


@dataclass(frozen=True)
class ColumnCast:
    """One output column of a staging model.

    Attributes:
        name: Output column name
        source: Raw column it is read from
        dtype: DuckDB type to cast to (VARCHAR columns never fail)
        clean: SQL applied to the text value before casting, "{value}" is the input
        post: SQL applied to the cast value, "{value}" is the input

    Example:
        ColumnCast("price_per_night", "price", "DOUBLE",
                   clean="regexp_replace({value}, '[$,]', '', 'g')",
                   post="ROUND({value}, 2)")
    """

    name: str
    source: str
    dtype: str = "VARCHAR"
    clean: str | None = None
    post: str | None = None

    @property
    def is_text(self) -> bool:
        return self.dtype.upper() == "VARCHAR"

    def cleaned_sql(self) -> str:
        # Blank and whitespace-only text is missing, not malformed.
        # Text columns keep their exact value; typed columns are trimmed for the cast.
        raw = f"CAST({quote(self.source)} AS VARCHAR)"
        if self.is_text:
            value = f"CASE WHEN TRIM({raw}) = '' THEN NULL ELSE {raw} END"
        else:
            value = f"NULLIF(TRIM({raw}), '')"
        if self.clean:
            value = self.clean.format(value=value)
        return value

    def cast_sql(self) -> str:
        value = f"TRY_CAST({self.cleaned_sql()} AS {self.dtype})"
        if self.post:
            value = self.post.format(value=value)
        return value

    def failure_sql(self) -> str:
        """Count of non-null cleaned values that did not survive the cast."""
        cleaned = self.cleaned_sql()
        return (
            f"COUNT(*) FILTER (WHERE {cleaned} IS NOT NULL "
            f"AND TRY_CAST({cleaned} AS {self.dtype}) IS NULL)"
        )


class StagingProcessor:
    """Clean, cast and filter a raw table.

    Applies, in order:
        1. cleaning of the raw text (blank strings become null, custom cleaners)
        2. type coercion (lenient: unconvertible values become null;
           strict: any unconvertible value fails the model)
        3. row filtering on required columns

    Example:
        >>> processor = StagingProcessor(
        ...     columns=[ColumnCast("listing_id", "id", "BIGINT")],
        ...     required=["listing_id"],
        ... )
        >>> staged = processor.process(raw_df, context)
    """

    def __init__(self, columns: list[ColumnCast], required: list[str] | None = None):
        if not columns:
            raise ValueError("StagingProcessor requires at least one column")
        self.columns = columns
        self.required = required or []

        unknown = set(self.required) - {c.name for c in columns}
        if unknown:
            raise ValueError(f"Required columns are not produced: {sorted(unknown)}")

    def _failure_counts(self, conn: duckdb.DuckDBPyConnection) -> dict[str, int]:
        checked = [c for c in self.columns if not c.is_text]
        if not checked:
            return {}
        exprs = ", ".join(f"{c.failure_sql()} AS {quote(c.name)}" for c in checked)
        row = conn.sql(f"SELECT {exprs} FROM _input").fetchone()
        return {c.name: int(count) for c, count in zip(checked, row) if count}

    def process(self, df: pl.DataFrame, context: "ModelContext") -> pl.DataFrame:
        """Stage a raw DataFrame.

        Args:
            df: Raw input, left unmodified
            context: Model context, receives drop and coercion counters

        Returns:
            Typed DataFrame with rows missing a required column removed

        Raises:
            CoercionError: Under the strict policy, if any value can't be cast
        """
        conn = duckdb.connect(":memory:")
        try:
            conn.register("_input", df)
            failures = self._failure_counts(conn)
            if failures and context.cast_policy == CastPolicy.STRICT:
                raise CoercionError(context.model_name, failures)
            for column, count in failures.items():
                context.record_coercion_failures(column, count)

            select = ", ".join(f"{c.cast_sql()} AS {quote(c.name)}" for c in self.columns)
            typed = conn.sql(f"SELECT {select} FROM _input").pl()
        finally:
            conn.close()

        if self.required:
            staged = typed.filter(
                pl.all_horizontal([pl.col(c).is_not_null() for c in self.required])
            )
        else:
            staged = typed

        context.record_dropped(len(typed) - len(staged))
        return staged

    def __repr__(self) -> str:
        return f"StagingProcessor({', '.join(c.name for c in self.columns)})"


class DuckDBSQLProcessor:
    """Run a model's SQL over polars frames.

    The model's primary input is registered as "_input". Upstream models it
    joins against go in `tables`, under the names its SQL uses; fact_reviews
    passes stg_listings this way.
    """

    def __init__(self, sql: str):
        self.sql = sql

    def process(
        self, df: pl.DataFrame, tables: dict[str, pl.DataFrame] | None = None
    ) -> pl.DataFrame:
        frames = {"_input": df, **(tables or {})}
        conn = duckdb.connect(":memory:")
        try:
            for name, frame in frames.items():
                conn.register(name, frame)
            return conn.sql(self.sql).pl()
        finally:
            conn.close()

    def __repr__(self) -> str:
        first_line = next((line.strip() for line in self.sql.splitlines() if line.strip()), "")
        return f"DuckDBSQLProcessor({first_line})"
