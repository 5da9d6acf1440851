# ridepool/shared/models/common.py
"""
Общие типы для всех моделей.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator


def _as_aware(value: datetime) -> datetime:
    """Время без часового пояса считается UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# Момент времени, всегда с часовым поясом
Timestamp = Annotated[datetime, AfterValidator(_as_aware)]
