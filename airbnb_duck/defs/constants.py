"""Business rules and thresholds for the airbnb-duck models.

Centralizing them here makes it easy to:
- Understand what business rules exist
- Modify thresholds without hunting through SQL
- Keep the categorization and its validation rules in sync
"""

# -----------------------------------------------------------------------------
# Price Categories (price_per_night)
# -----------------------------------------------------------------------------

# Listings are categorized by nightly price, bounds inclusive as written:
#   - Budget:    < 50
#   - Mid-range: 50 - 150
#   - Premium:   > 150 and <= 300
#   - Luxury:    everything else

PRICE_BUDGET_BELOW = 50
PRICE_MID_RANGE_MAX = 150
PRICE_PREMIUM_MAX = 300

PRICE_CATEGORIES = ("Budget", "Mid-range", "Premium", "Luxury")

# -----------------------------------------------------------------------------
# Review Categories (number_of_reviews)
# -----------------------------------------------------------------------------

#   - No Reviews:   0
#   - Few Reviews:  1 - 10
#   - Some Reviews: 11 - 50
#   - Many Reviews: everything else

REVIEWS_FEW_MAX = 10
REVIEWS_SOME_MAX = 50

REVIEW_CATEGORIES = ("No Reviews", "Few Reviews", "Some Reviews", "Many Reviews")

# -----------------------------------------------------------------------------
# Coordinate bounds
# -----------------------------------------------------------------------------

LATITUDE_RANGE = (-90, 90)
LONGITUDE_RANGE = (-180, 180)
