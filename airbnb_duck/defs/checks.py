"""Standing validation rules for the airbnb-duck pipeline.

These run after every model has executed. A failing rule is reported as a
quality failure; the tables it checked stay materialized.

Includes:
- Business rules on dim_listings (positive prices, plausible coordinates)
- Structural rules (unique listing ids, present review ids, category values)

Blocking schema checks are not here: they run before materialization and live
in schemas.py.
"""

from airbnb_duck.validation import (
    accepted_values_rule,
    expression_rule,
    not_null_rule,
    unique_rule,
)

from .constants import LATITUDE_RANGE, LONGITUDE_RANGE, PRICE_CATEGORIES, REVIEW_CATEGORIES

# -----------------------------------------------------------------------------
# Business rules
# -----------------------------------------------------------------------------

positive_price = expression_rule(
    "dim_listings_positive_price",
    "dim_listings",
    "price_per_night <= 0",
    description="Nightly price must be greater than zero",
)

valid_coordinates = expression_rule(
    "dim_listings_valid_coordinates",
    "dim_listings",
    (
        f"latitude < {LATITUDE_RANGE[0]} OR latitude > {LATITUDE_RANGE[1]} "
        f"OR longitude < {LONGITUDE_RANGE[0]} OR longitude > {LONGITUDE_RANGE[1]}"
    ),
    description="Latitude must be within [-90, 90] and longitude within [-180, 180]",
)

# -----------------------------------------------------------------------------
# Structural rules
# -----------------------------------------------------------------------------

STANDING_RULES = [
    positive_price,
    valid_coordinates,
    unique_rule("dim_listings", "listing_id"),
    not_null_rule("fact_reviews", "review_id"),
    accepted_values_rule("dim_listings", "price_category", PRICE_CATEGORIES),
    accepted_values_rule("dim_listings", "review_category", REVIEW_CATEGORIES),
]
