# ridepool/shared/models/route.py
"""
Результат построения маршрута.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from ridepool.shared.models.geo import Coordinates


class RouteLeg(BaseModel):
    """Участок маршрута между соседними точками."""

    duration: int = Field(..., ge=0, description="Секунды")
    distance: int = Field(..., ge=0, description="Метры")
    start_location: Coordinates
    end_location: Coordinates

    class Config:
        frozen = True


class RouteResult(BaseModel):
    """Маршрут через упорядоченный список точек."""

    duration: int = Field(..., ge=0, description="Суммарная длительность, сек")
    distance: int = Field(..., ge=0, description="Суммарное расстояние, м")
    polyline: str = ""
    legs: list[RouteLeg] = Field(default_factory=list)

    class Config:
        frozen = True

    @classmethod
    def from_legs(cls, legs: list[RouteLeg], polyline: str = "") -> "RouteResult":
        """Собирает маршрут, суммируя участки."""
        return cls(
            duration=sum(leg.duration for leg in legs),
            distance=sum(leg.distance for leg in legs),
            polyline=polyline,
            legs=legs,
        )
