"""Shared enums for all value records."""
from __future__ import annotations

import enum


class TrafficLevelEnum(str, enum.Enum):
    """Live traffic condition reported by the routing collaborator.

    Declaration order is severity order; use ``severity`` to compare.
    """
    UNKNOWN = "unknown"
    FREE_FLOW = "free_flow"
    NORMAL = "normal"
    MODERATE = "moderate"
    HEAVY = "heavy"

    @property
    def severity(self) -> int:
        return list(TrafficLevelEnum).index(self)


class RouteRiskLevelEnum(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"


class PredictionSourceEnum(str, enum.Enum):
    BASELINE = "baseline"
    FORECAST = "forecast"
    NEUTRAL = "neutral"
    BLENDED = "blended"


class CascadeTypeEnum(str, enum.Enum):
    IMMEDIATE = "immediate"      # < 5 min
    SHORT_TERM = "short_term"    # 5-15 min
    MEDIUM_TERM = "medium_term"  # 15-30 min
    DELAYED = "delayed"


class TrendDirectionEnum(str, enum.Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"
