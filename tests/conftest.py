"""Pytest fixtures for airbnb-duck tests.

Provides small raw datasets and in-memory resources so models and the
pipeline can be exercised without CSV extracts or a database file.

Key fixtures:
- listing_row / review_row: Factories for one raw row, every value as text
- raw_tables: A small dataset covering the cleaning and categorization paths
- provider: InMemoryRawTableProvider over raw_tables
- materializer: In-memory DuckDBMaterializer
- pipeline_config: PipelineConfig pointing at a temporary directory
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Callable

import pytest

from airbnb_duck.base import CastPolicy, ModelContext
from airbnb_duck.defs.config import PipelineConfig
from airbnb_duck.materializer import DuckDBMaterializer
from airbnb_duck.sources import InMemoryRawTableProvider

INGESTED_AT = datetime(2024, 6, 1, 12, 0, 0)


@pytest.fixture
def listing_row() -> Callable[..., dict[str, Any]]:
    """Factory for one raw listings row; keyword arguments override columns."""

    def make(**overrides: Any) -> dict[str, Any]:
        row = {
            "id": "1",
            "name": "Sunny flat",
            "host_id": "100",
            "host_name": "Anna",
            "neighbourhood_group": "Mitte",
            "neighbourhood": "Mitte",
            "latitude": "52.52",
            "longitude": "13.40",
            "room_type": "Entire home/apt",
            "price": "$100.00",
            "minimum_nights": "2",
            "number_of_reviews": "5",
            "last_review": "2024-01-15",
            "reviews_per_month": "0.5",
            "calculated_host_listings_count": "1",
            "availability_365": "200",
        }
        row.update(overrides)
        return row

    return make


@pytest.fixture
def review_row() -> Callable[..., dict[str, Any]]:
    """Factory for one raw reviews row; keyword arguments override columns."""

    def make(**overrides: Any) -> dict[str, Any]:
        row = {
            "listing_id": "1",
            "id": "1001",
            "date": "2024-01-01",
            "reviewer_id": "5000",
            "reviewer_name": "Ben",
            "comments": "Great stay",
        }
        row.update(overrides)
        return row

    return make


@pytest.fixture
def raw_tables(
    listing_row: Callable[..., dict[str, Any]],
    review_row: Callable[..., dict[str, Any]],
) -> dict[str, list[dict[str, Any]]]:
    """Small Berlin dataset.

    Listings:
        1  Mitte      $45.00     0 reviews  -> Budget / No Reviews
        2  Mitte      $150.00   10 reviews  -> Mid-range / Few Reviews
        3  Kreuzberg  $1,200.00 51 reviews  -> Luxury / Many Reviews
        -  (blank id, dropped)
        5  Kreuzberg  "abc"     11 reviews  -> price nulled, Luxury / Some Reviews

    Reviews:
        1001, 1002 on listing 1; 1003 on listing 3; 1004 on unknown listing 999;
        one with a blank id and one with an unparseable date (both dropped)
    """
    return {
        "listings": [
            listing_row(id="1", price="$45.00", number_of_reviews="0", last_review=""),
            listing_row(id="2", price="$150.00", number_of_reviews="10"),
            listing_row(
                id="3",
                price="$1,200.00",
                number_of_reviews="51",
                host_id="200",
                neighbourhood_group="Friedrichshain-Kreuzberg",
                neighbourhood="Kreuzberg",
                latitude="52.50",
                longitude="13.42",
            ),
            listing_row(id="  ", price="$80.00"),
            listing_row(
                id="5",
                price="abc",
                number_of_reviews="11",
                host_id="300",
                neighbourhood_group="Friedrichshain-Kreuzberg",
                neighbourhood="Kreuzberg",
                latitude="52.49",
                longitude="13.43",
            ),
        ],
        "reviews": [
            review_row(listing_id="1", id="1001", date="2024-01-01"),
            review_row(listing_id="1", id="1002", date="2024-01-07"),
            review_row(listing_id="3", id="1003", date="2024-02-15"),
            review_row(listing_id="999", id="1004", date="2024-03-01"),
            review_row(listing_id="2", id="", date="2024-03-02"),
            review_row(listing_id="2", id="1006", date="not a date"),
        ],
        "full_moon_dates": [
            {"full_moon_date": "2024-01-25"},
            {"full_moon_date": "2024-02-24"},
        ],
    }


@pytest.fixture
def ingested_at() -> datetime:
    """Timestamp stamped on every in-memory raw row."""
    return INGESTED_AT


@pytest.fixture
def provider(raw_tables: dict[str, list[dict[str, Any]]]) -> InMemoryRawTableProvider:
    return InMemoryRawTableProvider(raw_tables, ingested_at=INGESTED_AT)


@pytest.fixture
def materializer():
    """In-memory materializer, closed after the test."""
    store = DuckDBMaterializer()
    yield store
    store.close()


@pytest.fixture
def pipeline_config(tmp_path: Path) -> PipelineConfig:
    return PipelineConfig(
        raw_dir=tmp_path / "raw",
        duckdb_path=tmp_path / "output" / "airbnb.duckdb",
    )


@pytest.fixture
def make_context() -> Callable[..., ModelContext]:
    """Factory for a ModelContext with the given model name and cast policy."""

    def make(name: str = "test_model", policy: CastPolicy = CastPolicy.LENIENT) -> ModelContext:
        return ModelContext(model_name=name, cast_policy=policy)

    return make
