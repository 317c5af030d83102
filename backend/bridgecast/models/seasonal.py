"""Per time-slot opening statistics with a seasonal decomposition."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SeasonalSlot(BaseModel):
    """Openings of one bridge in one (year, month, weekday, hour) slot.

    ``trend + seasonal + residual`` reconstructs ``opening_count``.
    """
    model_config = ConfigDict(frozen=True)

    entity_id: int
    entity_name: str
    year: int
    month: int
    weekday: int  # Monday = 0
    hour: int
    opening_count: int
    occurrences: int  # calendar days in the bridge's history that fall in this slot
    mean_minutes_open: float
    trend: float
    seasonal: float
    residual: float
    is_weekend: bool = False
    is_rush_hour: bool = False
    is_summer: bool = False
    holiday_adjustment: float = 0.0
    base_probability: float = Field(ge=0.0, le=1.0)
    opening_probability: float = Field(ge=0.0, le=1.0)
    expected_duration_minutes: float = 0.0
    confidence: float = Field(ge=0.0, le=1.0)
