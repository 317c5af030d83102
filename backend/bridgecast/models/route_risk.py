"""Route-level risk artifacts handed to the trip-planning collaborator."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bridgecast.models.base import RouteRiskLevelEnum, TrafficLevelEnum


class RoutePoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float


class CongestionPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    traffic_level: TrafficLevelEnum
    bridge_id: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    probability: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    distance_from_route_m: Optional[float] = None

    @field_validator("description")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("description must be non-empty")
        return v


class RouteRiskAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: RouteRiskLevelEnum
    traffic_level: TrafficLevelEnum
    congestion_points: tuple[CongestionPoint, ...] = ()
    bridges_on_route: tuple[int, ...] = ()
    max_probability: Optional[float] = None
