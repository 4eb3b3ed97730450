"""Combined Dagster definitions for the airbnb-duck pipeline.

This module creates the single Definitions object that Dagster uses.

Model Graph
-----------
    listings ─────────→ stg_listings ──┬──→ dim_listings ──→ agg_neighbourhood_metrics
                                       │
    reviews ──────────→ stg_reviews ───┴──→ fact_reviews
    full_moon_dates ──→ stg_full_moon_dates

Layers
------
- staging: Typed raw tables (lenient or strict casting, Pandera schemas)
- dimensional: Categorized listings and enriched review facts
- aggregation: Neighbourhood metrics

Launch with: dagster dev -m airbnb_duck.defs.definitions
"""

import dagster as dg

from .jobs import airbnb_pipeline, daily_airbnb_pipeline
from .resources import AirbnbPipelineResource

defs = dg.Definitions(
    jobs=[airbnb_pipeline],
    schedules=[daily_airbnb_pipeline],
    resources={"airbnb": AirbnbPipelineResource()},
)
