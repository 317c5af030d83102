"""Per-bridge aggregate statistics and baseline opening estimate."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from bridgecast.models.prediction import Prediction


class BridgeAnalytics(BaseModel):
    model_config = ConfigDict(frozen=True)

    entity_id: int
    entity_name: str
    opening_count: int
    total_minutes_open: float
    mean_minutes_open: float
    median_minutes_open: float
    longest_minutes_open: float
    shortest_minutes_open: float
    hourly_distribution: tuple[int, ...]   # 24 buckets, hour of day
    weekday_distribution: tuple[int, ...]  # 7 buckets, Monday = 0
    peak_hour: int
    baseline_probability: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    window_start: datetime
    window_end: datetime
    last_opened_at: datetime
    is_currently_open: bool = False
    current_prediction: Optional[Prediction] = None
