"""
Вставка запроса в существующий рейс.
"""

from ridepool.core.insertion.service import (
    InsertionCandidate,
    InsertionEvaluator,
    onboard_profile,
    passengers_at_stop,
    splice_stops,
    schedule_stops,
)

__all__ = [
    "InsertionCandidate",
    "InsertionEvaluator",
    "onboard_profile",
    "passengers_at_stop",
    "splice_stops",
    "schedule_stops",
]
