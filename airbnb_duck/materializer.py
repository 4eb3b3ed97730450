"""DuckDB materializer with full-refresh semantics.

Every model output is persisted as one DuckDB table named after the model.
A write replaces the whole table inside a single transaction, so readers see
either the complete prior version or the complete new one. If the write
fails, the transaction is rolled back and the prior version is kept.

Schema namespacing is configuration: the core addresses tables by logical name
and the materializer qualifies them with its schema.
"""

from __future__ import annotations

from pathlib import Path

import dagster as dg
import duckdb
import polars as pl

from airbnb_duck.exceptions import MaterializationError, MissingTableError
from airbnb_duck.processors import quote

logger = dg.get_dagster_logger(__name__)


class DuckDBMaterializer:
    """Sole writer of the pipeline's materialized tables.

    Example:
        with DuckDBMaterializer("data/output/airbnb.duckdb") as store:
            store.materialize("dim_listings", df)
            df = store.read("dim_listings")
    """

    def __init__(self, database: str | Path = ":memory:", schema: str = "main"):
        self.database = str(database)
        self.schema = schema
        if self.database != ":memory:":
            Path(self.database).parent.mkdir(parents=True, exist_ok=True)
        self.con = duckdb.connect(self.database)
        self.con.execute(f"CREATE SCHEMA IF NOT EXISTS {quote(schema)}")

    def qualified(self, name: str) -> str:
        return f"{quote(self.schema)}.{quote(name)}"

    def materialize(self, name: str, df: pl.DataFrame) -> int:
        """Replace table `name` with the rows of `df` in one step.

        Returns:
            Number of rows written

        Raises:
            MaterializationError: If the write fails; the prior table is left intact
        """
        view = f"_materialize_{name}"
        try:
            self.con.register(view, df)
        except (duckdb.Error, pl.exceptions.PolarsError, TypeError, ValueError) as e:
            raise MaterializationError(name, str(e)) from e

        try:
            self.con.execute("BEGIN TRANSACTION")
            self.con.execute(
                f"CREATE OR REPLACE TABLE {self.qualified(name)} AS SELECT * FROM {quote(view)}"
            )
            self.con.execute("COMMIT")
        except duckdb.Error as e:
            self.con.execute("ROLLBACK")
            raise MaterializationError(name, str(e)) from e
        finally:
            self.con.unregister(view)

        logger.info(f"Materialized {len(df):,} rows to {self.schema}.{name}")
        return len(df)

    def read(self, name: str, model_name: str = "unknown") -> pl.DataFrame:
        """Read a materialized table back as a Polars DataFrame.

        Raises:
            MissingTableError: If the table was never materialized
        """
        if not self.exists(name):
            raise MissingTableError(model_name, name, self.tables())
        return self.con.sql(f"SELECT * FROM {self.qualified(name)}").pl()

    def query(self, sql: str) -> pl.DataFrame:
        return self.con.sql(sql).pl()

    def exists(self, name: str) -> bool:
        row = self.con.execute(
            "SELECT COUNT(*) FROM information_schema.tables "
            "WHERE table_schema = ? AND table_name = ?",
            [self.schema, name],
        ).fetchone()
        return bool(row and row[0])

    def row_count(self, name: str) -> int:
        return self.con.sql(f"SELECT COUNT(*) FROM {self.qualified(name)}").fetchone()[0]

    def tables(self) -> list[str]:
        rows = self.con.execute(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = ? ORDER BY table_name",
            [self.schema],
        ).fetchall()
        return [row[0] for row in rows]

    def close(self) -> None:
        self.con.close()

    def __enter__(self) -> "DuckDBMaterializer":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"DuckDBMaterializer({self.database}, schema={self.schema})"
