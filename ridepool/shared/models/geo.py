# ridepool/shared/models/geo.py
"""
Геокоординаты.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class Coordinates(BaseModel):
    """Точка на карте."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    class Config:
        frozen = True
        from_attributes = True

    def as_param(self) -> str:
        """Формат "lat,lng" для Directions API."""
        return f"{self.lat},{self.lng}"

    def label(self) -> str:
        """Подпись точки, когда адрес неизвестен."""
        return f"{self.lat:.5f}, {self.lng:.5f}"
