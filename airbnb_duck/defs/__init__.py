"""Airbnb model definitions.

Models are registered in layer order; the resolver uses this order to break
ties between models that don't depend on each other.
"""

from airbnb_duck.registry import ModelRegistry
from airbnb_duck.sources import RAW_TABLES

from .aggregation import agg_neighbourhood_metrics
from .checks import STANDING_RULES
from .dimensional import dim_listings, fact_reviews
from .staging import stg_full_moon_dates, stg_listings, stg_reviews

MODELS = (
    stg_listings,
    stg_reviews,
    stg_full_moon_dates,
    dim_listings,
    fact_reviews,
    agg_neighbourhood_metrics,
)


def build_registry() -> ModelRegistry:
    """Registry holding every Airbnb model and the raw tables they read."""
    return ModelRegistry(raw_tables=RAW_TABLES, models=MODELS)


__all__ = ["MODELS", "STANDING_RULES", "build_registry"]
