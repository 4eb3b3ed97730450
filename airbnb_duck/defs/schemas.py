"""Pandera schemas for model outputs.

Each model that declares a schema is validated before it is materialized.
This is a blocking check: an output that fails its schema is never written,
and every model downstream of it is skipped.

The schemas check structure (columns, types, required fields, category
values). Data quality expectations that should not block a run, like positive
prices, live in the validation rules in checks.py instead.

Note: Uses pandera.polars for validating Polars DataFrames.
"""

import datetime

import pandera.polars as pa

from .constants import PRICE_CATEGORIES, REVIEW_CATEGORIES


class ListingSchema(pa.DataFrameModel):
    """Schema for stg_listings output."""

    listing_id: int
    listing_name: str = pa.Field(nullable=True)
    host_id: int = pa.Field(nullable=True)
    host_name: str = pa.Field(nullable=True)
    neighbourhood_group: str = pa.Field(nullable=True)
    neighbourhood: str = pa.Field(nullable=True)
    latitude: float = pa.Field(nullable=True)
    longitude: float = pa.Field(nullable=True)
    room_type: str = pa.Field(nullable=True)
    price_per_night: float = pa.Field(nullable=True)
    minimum_nights: int = pa.Field(nullable=True)
    number_of_reviews: int = pa.Field(nullable=True)
    last_review_date: datetime.date = pa.Field(nullable=True)
    reviews_per_month: float = pa.Field(nullable=True)
    calculated_host_listings_count: int = pa.Field(nullable=True)
    availability_365: int = pa.Field(nullable=True)
    ingested_at: datetime.datetime = pa.Field(nullable=True)

    class Config:
        coerce = True
        strict = False


class DimListingSchema(ListingSchema):
    """Schema for dim_listings output."""

    price_category: str = pa.Field(isin=list(PRICE_CATEGORIES))
    review_category: str = pa.Field(isin=list(REVIEW_CATEGORIES))


class ReviewSchema(pa.DataFrameModel):
    """Schema for stg_reviews output."""

    listing_id: int
    review_id: int
    review_date: datetime.date
    reviewer_id: int = pa.Field(nullable=True)
    reviewer_name: str = pa.Field(nullable=True)
    review_comments: str = pa.Field(nullable=True)
    ingested_at: datetime.datetime = pa.Field(nullable=True)

    class Config:
        coerce = True
        strict = False


class FactReviewSchema(ReviewSchema):
    """Schema for fact_reviews output.

    Listing columns are nullable: reviews of unknown listings are kept.
    """

    neighbourhood: str = pa.Field(nullable=True)
    room_type: str = pa.Field(nullable=True)
    price_per_night: float = pa.Field(nullable=True)
    review_year: int
    review_month: int = pa.Field(in_range={"min_value": 1, "max_value": 12})
    review_day_of_week: int = pa.Field(in_range={"min_value": 1, "max_value": 7})


class FullMoonDateSchema(pa.DataFrameModel):
    """Schema for stg_full_moon_dates output."""

    full_moon_date: datetime.date

    class Config:
        coerce = True
        strict = True


class NeighbourhoodMetricsSchema(pa.DataFrameModel):
    """Schema for agg_neighbourhood_metrics output."""

    neighbourhood: str = pa.Field(nullable=True)
    neighbourhood_group: str = pa.Field(nullable=True)
    total_listings: int = pa.Field(ge=1)
    avg_price: float = pa.Field(nullable=True)
    min_price: float = pa.Field(nullable=True)
    max_price: float = pa.Field(nullable=True)
    avg_reviews_per_listing: float = pa.Field(nullable=True)
    total_reviews: int = pa.Field(nullable=True)
    unique_hosts: int = pa.Field(ge=0)
    avg_availability: float = pa.Field(nullable=True)

    class Config:
        coerce = True
        strict = False
