"""Dimensional and fact models.

Model Graph:
    stg_listings ──┬──────────────→ dim_listings
                   │
    stg_reviews ───┴──[left join]──→ fact_reviews

dim_listings adds two independent classifications to every staged listing.
fact_reviews keeps every staged review, enriching it with listing attributes
where a listing matches and with calendar fields from the review date.

Day of week follows ISO 8601: 1 = Monday ... 7 = Sunday.
"""

import time

import polars as pl

from airbnb_duck.base import Layer, ModelContext, model
from airbnb_duck.processors import DuckDBSQLProcessor

from .constants import (
    PRICE_BUDGET_BELOW,
    PRICE_MID_RANGE_MAX,
    PRICE_PREMIUM_MAX,
    REVIEWS_FEW_MAX,
    REVIEWS_SOME_MAX,
)
from .schemas import DimListingSchema, FactReviewSchema

# Null prices and null review counts fall through to the last bucket
DIM_LISTINGS_SQL = f"""
    SELECT
        *,
        CASE
            WHEN price_per_night < {PRICE_BUDGET_BELOW} THEN 'Budget'
            WHEN price_per_night <= {PRICE_MID_RANGE_MAX} THEN 'Mid-range'
            WHEN price_per_night <= {PRICE_PREMIUM_MAX} THEN 'Premium'
            ELSE 'Luxury'
        END AS price_category,
        CASE
            WHEN number_of_reviews = 0 THEN 'No Reviews'
            WHEN number_of_reviews BETWEEN 1 AND {REVIEWS_FEW_MAX} THEN 'Few Reviews'
            WHEN number_of_reviews BETWEEN {REVIEWS_FEW_MAX + 1} AND {REVIEWS_SOME_MAX} THEN 'Some Reviews'
            ELSE 'Many Reviews'
        END AS review_category
    FROM _input
    ORDER BY ALL
"""

# Listings are reduced to one row per listing_id (latest ingested first) so a
# duplicated listing can never multiply review rows in the left join.
FACT_REVIEWS_SQL = """
    WITH listings AS (
        SELECT listing_id, neighbourhood, room_type, price_per_night
        FROM (
            SELECT
                *,
                row_number() OVER (
                    PARTITION BY listing_id
                    ORDER BY ingested_at DESC NULLS LAST, neighbourhood, room_type, price_per_night
                ) AS _rank
            FROM stg_listings
        )
        WHERE _rank = 1
    )
    SELECT
        r.review_id,
        r.listing_id,
        r.review_date,
        r.reviewer_id,
        r.reviewer_name,
        r.review_comments,
        r.ingested_at,
        l.neighbourhood,
        l.room_type,
        l.price_per_night,
        year(r.review_date) AS review_year,
        month(r.review_date) AS review_month,
        isodow(r.review_date) AS review_day_of_week
    FROM _input r
    LEFT JOIN listings l ON r.listing_id = l.listing_id
    ORDER BY ALL
"""


@model(layer=Layer.DIMENSIONAL, upstream=["stg_listings"], schema=DimListingSchema)
def dim_listings(context: ModelContext, stg_listings: pl.DataFrame) -> pl.DataFrame:
    """Listings with price and review categories."""
    start_time = time.perf_counter()

    result = DuckDBSQLProcessor(DIM_LISTINGS_SQL).process(stg_listings)

    vc = result["price_category"].value_counts()
    elapsed_ms = (time.perf_counter() - start_time) * 1000
    context.add_metadata(
        record_count=len(result),
        price_category_distribution=dict(zip(vc["price_category"].to_list(), vc["count"].to_list())),
        processing_time_ms=round(elapsed_ms, 2),
    )
    context.log.info(f"Categorized {len(result):,} listings in {elapsed_ms:.1f}ms")
    return result


@model(
    layer=Layer.DIMENSIONAL,
    upstream=["stg_reviews", "stg_listings"],
    schema=FactReviewSchema,
)
def fact_reviews(
    context: ModelContext,
    stg_reviews: pl.DataFrame,
    stg_listings: pl.DataFrame,
) -> pl.DataFrame:
    """Reviews enriched with listing attributes and calendar fields."""
    start_time = time.perf_counter()

    result = DuckDBSQLProcessor(FACT_REVIEWS_SQL).process(
        stg_reviews, tables={"stg_listings": stg_listings}
    )

    unmatched = stg_reviews.join(
        stg_listings.select("listing_id").unique(), on="listing_id", how="anti"
    ).height
    elapsed_ms = (time.perf_counter() - start_time) * 1000
    context.add_metadata(
        record_count=len(result),
        unmatched_listing_count=int(unmatched),
        processing_time_ms=round(elapsed_ms, 2),
    )
    context.log.info(f"Built {len(result):,} review facts in {elapsed_ms:.1f}ms")
    return result
