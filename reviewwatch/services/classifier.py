"""Critical review classifier.

A review is critical when its rating is at or below CRITICAL_RATING_MAX.
This is fixed at ingestion and independent of the per-tenant alert
threshold (AlertSettings.rating_max).
"""

import math

CRITICAL_RATING_MAX = 3


def is_critical(rating) -> bool:
    if isinstance(rating, bool) or not isinstance(rating, (int, float)):
        return False
    return math.isfinite(rating) and rating <= CRITICAL_RATING_MAX
