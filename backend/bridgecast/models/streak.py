"""Closed-streak records: how long bridges go without opening."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def format_hours(hours: float) -> str:
    """``"7h"`` below a day, ``"3d 12h"`` from a day up."""
    if hours < 24:
        return f"{int(hours)}h"
    return f"{int(hours // 24)}d {int(hours % 24)}h"


class StreakPattern(BaseModel):
    """A gap between two consecutive openings long enough to count as a streak."""
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    duration_hours: float


class StreakData(BaseModel):
    model_config = ConfigDict(frozen=True)

    bridge_id: int
    bridge_name: str
    current_streak_hours: float
    longest_streak_hours: float = 0.0
    average_streak_hours: float = 0.0
    streak_count: int = 0
    last_opening: Optional[datetime] = None
    next_predicted_opening: Optional[datetime] = None
    prediction_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    patterns: tuple[StreakPattern, ...] = ()

    @property
    def formatted_current_streak(self) -> str:
        return format_hours(self.current_streak_hours)

    @property
    def formatted_longest_streak(self) -> str:
        return format_hours(self.longest_streak_hours)

    @property
    def status(self) -> str:
        """``record``, ``good``, ``poor`` or ``normal`` against this bridge's own history."""
        current = self.current_streak_hours
        if current > self.longest_streak_hours * 0.8:
            return "record"
        if current > self.average_streak_hours * 1.2:
            return "good"
        if current < self.average_streak_hours * 0.8:
            return "poor"
        return "normal"


class WeeklyChampion(BaseModel):
    """Bridge that has gone longest without opening."""
    model_config = ConfigDict(frozen=True)

    bridge_id: int
    bridge_name: str
    streak_hours: float
    confidence: float = Field(ge=0.0, le=1.0)
    historical_context: str
