"""Opening-volume trend records."""
from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict

from bridgecast.models.base import TrendDirectionEnum


class DailyTrendPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: date
    opening_count: int
    total_minutes_open: float


class TrendSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_total: int
    previous_total: int
    percent_change: float
    direction: TrendDirectionEnum
