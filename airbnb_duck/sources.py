"""Raw table providers.

A provider hands the pipeline one raw table at a time as an untyped Polars
DataFrame: every column is text, exactly as delivered. Each row carries the
documented raw columns plus an `ingested_at` timestamp.

Providers:
    - CsvRawTableProvider: reads <raw_dir>/<table>.csv, or a packaged seed
    - InMemoryRawTableProvider: rows passed in directly (tests, embedding)
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

import duckdb
import polars as pl

from airbnb_duck.exceptions import DataValidationError, MissingColumnError, MissingTableError

SEEDS_DIR = Path(__file__).parent / "seeds"

# Documented raw columns per source table (ingested_at is added when absent)
RAW_TABLE_COLUMNS: dict[str, tuple[str, ...]] = {
    "listings": (
        "id",
        "name",
        "host_id",
        "host_name",
        "neighbourhood_group",
        "neighbourhood",
        "latitude",
        "longitude",
        "room_type",
        "price",
        "minimum_nights",
        "number_of_reviews",
        "last_review",
        "reviews_per_month",
        "calculated_host_listings_count",
        "availability_365",
    ),
    "reviews": (
        "listing_id",
        "id",
        "date",
        "reviewer_id",
        "reviewer_name",
        "comments",
    ),
    "full_moon_dates": ("full_moon_date",),
}

RAW_TABLES = tuple(RAW_TABLE_COLUMNS)

INGESTED_AT = "ingested_at"


class RawTableProvider(Protocol):
    """Anything that can deliver a raw table by name."""

    def get_raw_table(self, name: str) -> pl.DataFrame: ...


def _conform(df: pl.DataFrame, name: str, ingested_at: datetime) -> pl.DataFrame:
    """Check documented columns, stamp ingested_at, deliver every column as text."""
    expected = RAW_TABLE_COLUMNS.get(name, ())
    missing = set(expected) - set(df.columns)
    if missing:
        raise MissingColumnError(f"raw.{name}", missing, df.columns)

    if INGESTED_AT not in df.columns:
        df = df.with_columns(pl.lit(ingested_at.isoformat(sep=" ")).alias(INGESTED_AT))

    return df.with_columns(pl.all().cast(pl.Utf8))


class CsvRawTableProvider:
    """Read raw tables from CSV files.

    Tables named in `seeded_tables` are read from the seed CSVs packaged with
    airbnb-duck instead of the raw directory; both paths produce the same
    columns.

    When a file has no ingested_at column, rows are stamped with the file's
    modification time so identical files always stage identically.

    Example:
        provider = CsvRawTableProvider("data/raw", seeded_tables={"full_moon_dates"})
        listings = provider.get_raw_table("listings")
    """

    def __init__(
        self,
        raw_dir: str | Path,
        seeded_tables: Sequence[str] = (),
        seeds_dir: str | Path = SEEDS_DIR,
    ):
        self.raw_dir = Path(raw_dir)
        self.seeded_tables = frozenset(seeded_tables)
        self.seeds_dir = Path(seeds_dir)

    def path_for(self, name: str) -> Path:
        base = self.seeds_dir if name in self.seeded_tables else self.raw_dir
        return base / f"{name}.csv"

    def available_tables(self) -> list[str]:
        found = {p.stem for p in self.raw_dir.glob("*.csv")} if self.raw_dir.exists() else set()
        found |= {n for n in self.seeded_tables if (self.seeds_dir / f"{n}.csv").exists()}
        return sorted(found)

    def get_raw_table(self, name: str) -> pl.DataFrame:
        path = self.path_for(name)
        if not path.exists():
            raise MissingTableError(f"raw.{name}", str(path), self.available_tables())

        escaped = str(path).replace("'", "''")
        conn = duckdb.connect(":memory:")
        try:
            df = conn.sql(
                f"SELECT * FROM read_csv('{escaped}', header = true, all_varchar = true)"
            ).pl()
        except duckdb.Error as e:
            raise DataValidationError(f"raw.{name}", f"Cannot read {path}: {e}") from e
        finally:
            conn.close()

        return _conform(df, name, datetime.fromtimestamp(path.stat().st_mtime))

    def __repr__(self) -> str:
        return f"CsvRawTableProvider({self.raw_dir}, seeded={sorted(self.seeded_tables)})"


class InMemoryRawTableProvider:
    """Serve raw tables from rows held in memory.

    Values are delivered as text, matching what a CSV extract would contain.
    Rows missing a key get a null for it.

    Example:
        provider = InMemoryRawTableProvider({
            "listings": [{"id": "10", "price": "$1,200.00", ...}],
        })
    """

    def __init__(
        self,
        tables: Mapping[str, Sequence[Mapping[str, Any]] | pl.DataFrame],
        ingested_at: datetime | None = None,
    ):
        self.ingested_at = ingested_at or datetime.now().replace(microsecond=0)
        self._tables = {name: self._to_frame(name, rows) for name, rows in tables.items()}

    @staticmethod
    def _to_frame(
        name: str, rows: Sequence[Mapping[str, Any]] | pl.DataFrame
    ) -> pl.DataFrame:
        if isinstance(rows, pl.DataFrame):
            return rows.with_columns(pl.all().cast(pl.Utf8))

        columns = list(RAW_TABLE_COLUMNS.get(name, ()))
        for row in rows:
            columns.extend(k for k in row if k not in columns)

        data = [
            {c: (None if row.get(c) is None else str(row.get(c))) for c in columns}
            for row in rows
        ]
        return pl.DataFrame(data, schema={c: pl.Utf8 for c in columns})

    def get_raw_table(self, name: str) -> pl.DataFrame:
        if name not in self._tables:
            raise MissingTableError(f"raw.{name}", name, list(self._tables))
        return _conform(self._tables[name], name, self.ingested_at)

    def __repr__(self) -> str:
        return f"InMemoryRawTableProvider({', '.join(self._tables)})"
