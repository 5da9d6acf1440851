"""
Домен матчинга.
Подбор рейса или машины для запроса на совместную поездку.
"""

from ridepool.core.matching.service import MatchingEngine

__all__ = [
    "MatchingEngine",
]
