"""Staging models: cast raw tables to typed records and drop invalid rows.

Each staging model reads exactly one raw table and applies, in order:
    1. cleaning (blank strings are null, currency symbols stripped from prices)
    2. type coercion under the model's cast policy
    3. removal of rows missing a required column

Model Graph:
    listings ─────────→ stg_listings
    reviews ──────────→ stg_reviews
    full_moon_dates ──→ stg_full_moon_dates   (raw table or packaged seed)
"""

import polars as pl

from airbnb_duck.base import Layer, ModelContext, model
from airbnb_duck.processors import ColumnCast, StagingProcessor

from .schemas import FullMoonDateSchema, ListingSchema, ReviewSchema

# Strip "$" and thousands separators before the numeric cast: "$1,200.00" -> 1200.00
STRIP_CURRENCY = "regexp_replace({value}, '[$,]', '', 'g')"
ROUND_CENTS = "ROUND({value}, 2)"

LISTINGS_STAGING = StagingProcessor(
    columns=[
        ColumnCast("listing_id", "id", "BIGINT"),
        ColumnCast("listing_name", "name"),
        ColumnCast("host_id", "host_id", "BIGINT"),
        ColumnCast("host_name", "host_name"),
        ColumnCast("neighbourhood_group", "neighbourhood_group"),
        ColumnCast("neighbourhood", "neighbourhood"),
        ColumnCast("latitude", "latitude", "DOUBLE"),
        ColumnCast("longitude", "longitude", "DOUBLE"),
        ColumnCast("room_type", "room_type"),
        ColumnCast("price_per_night", "price", "DOUBLE", clean=STRIP_CURRENCY, post=ROUND_CENTS),
        ColumnCast("minimum_nights", "minimum_nights", "BIGINT"),
        ColumnCast("number_of_reviews", "number_of_reviews", "BIGINT"),
        ColumnCast("last_review_date", "last_review", "DATE"),
        ColumnCast("reviews_per_month", "reviews_per_month", "DOUBLE"),
        ColumnCast(
            "calculated_host_listings_count", "calculated_host_listings_count", "BIGINT"
        ),
        ColumnCast("availability_365", "availability_365", "BIGINT"),
        ColumnCast("ingested_at", "ingested_at", "TIMESTAMP"),
    ],
    required=["listing_id"],
)

REVIEWS_STAGING = StagingProcessor(
    columns=[
        ColumnCast("listing_id", "listing_id", "BIGINT"),
        ColumnCast("review_id", "id", "BIGINT"),
        ColumnCast("review_date", "date", "DATE"),
        ColumnCast("reviewer_id", "reviewer_id", "BIGINT"),
        ColumnCast("reviewer_name", "reviewer_name"),
        ColumnCast("review_comments", "comments"),
        ColumnCast("ingested_at", "ingested_at", "TIMESTAMP"),
    ],
    required=["listing_id", "review_id", "review_date"],
)

FULL_MOON_DATES_STAGING = StagingProcessor(
    columns=[ColumnCast("full_moon_date", "full_moon_date", "DATE")],
    required=["full_moon_date"],
)


def _report(context: ModelContext, raw: pl.DataFrame, staged: pl.DataFrame) -> None:
    context.add_metadata(
        raw_count=len(raw),
        record_count=len(staged),
        rows_dropped=context.rows_dropped,
        values_nulled=sum(context.coercion_failures.values()),
    )
    context.log.info(
        f"{context.model_name}: staged {len(staged):,} of {len(raw):,} rows "
        f"({context.rows_dropped:,} dropped, "
        f"{sum(context.coercion_failures.values()):,} values nulled)"
    )


@model(layer=Layer.STAGING, upstream=["listings"], schema=ListingSchema)
def stg_listings(context: ModelContext, listings: pl.DataFrame) -> pl.DataFrame:
    """Typed listings; rows without a listing id are dropped."""
    result = LISTINGS_STAGING.process(listings, context)
    _report(context, listings, result)
    return result


@model(layer=Layer.STAGING, upstream=["reviews"], schema=ReviewSchema)
def stg_reviews(context: ModelContext, reviews: pl.DataFrame) -> pl.DataFrame:
    """Typed reviews; rows without listing id, review id or date are dropped."""
    result = REVIEWS_STAGING.process(reviews, context)
    _report(context, reviews, result)
    return result


@model(layer=Layer.STAGING, upstream=["full_moon_dates"], schema=FullMoonDateSchema)
def stg_full_moon_dates(context: ModelContext, full_moon_dates: pl.DataFrame) -> pl.DataFrame:
    """Full moon calendar, one date per row."""
    result = FULL_MOON_DATES_STAGING.process(full_moon_dates, context)
    _report(context, full_moon_dates, result)
    return result
