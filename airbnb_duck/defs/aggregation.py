"""Aggregation models.

Model Graph:
    dim_listings ──→ agg_neighbourhood_metrics

Aggregations read only the dimensional output, never the staging tables, so
every summary reflects the same derivations consumers see in dim_listings.
"""

import time

import polars as pl

from airbnb_duck.base import Layer, ModelContext, model
from airbnb_duck.processors import DuckDBSQLProcessor

from .schemas import NeighbourhoodMetricsSchema

# GROUP BY keeps null keys as their own group and compares text case-sensitively
NEIGHBOURHOOD_METRICS_SQL = """
    SELECT
        neighbourhood,
        neighbourhood_group,
        COUNT(DISTINCT listing_id) AS total_listings,
        AVG(price_per_night) AS avg_price,
        MIN(price_per_night) AS min_price,
        MAX(price_per_night) AS max_price,
        AVG(number_of_reviews) AS avg_reviews_per_listing,
        CAST(SUM(number_of_reviews) AS BIGINT) AS total_reviews,
        COUNT(DISTINCT host_id) AS unique_hosts,
        AVG(availability_365) AS avg_availability
    FROM _input
    GROUP BY neighbourhood, neighbourhood_group
    ORDER BY neighbourhood_group NULLS LAST, neighbourhood NULLS LAST
"""


@model(
    layer=Layer.AGGREGATION,
    upstream=["dim_listings"],
    schema=NeighbourhoodMetricsSchema,
)
def agg_neighbourhood_metrics(context: ModelContext, dim_listings: pl.DataFrame) -> pl.DataFrame:
    """Listing, price, review and availability summary per neighbourhood."""
    start_time = time.perf_counter()

    result = DuckDBSQLProcessor(NEIGHBOURHOOD_METRICS_SQL).process(dim_listings)

    elapsed_ms = (time.perf_counter() - start_time) * 1000
    context.add_metadata(
        record_count=len(result),
        neighbourhood_count=len(result),
        processing_time_ms=round(elapsed_ms, 2),
    )
    context.log.info(f"Aggregated {len(result):,} neighbourhoods in {elapsed_ms:.1f}ms")
    return result
