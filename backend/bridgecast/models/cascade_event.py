"""Correlated-opening clusters across bridges."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from bridgecast.models.base import CascadeTypeEnum


class CascadeParticipant(BaseModel):
    model_config = ConfigDict(frozen=True)

    bridge_id: int
    bridge_name: str
    event_id: str
    opened_at: datetime
    minutes_open: float
    delay_minutes: float  # after the trigger opening


class CascadeEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    cascade_id: str
    bridge_ids: tuple[int, ...]
    participants: tuple[CascadeParticipant, ...]
    trigger_bridge_id: int
    trigger_bridge_name: str
    trigger_event_id: str
    trigger_time: datetime
    window_start: datetime
    window_end: datetime
    propagation_delay_minutes: float
    severity: float = Field(ge=0.0, le=1.0)
    bridge_count_factor: float = 0.0
    temporal_factor: float = 0.0
    proximity_factor: float | None = None
    cascade_type: CascadeTypeEnum = CascadeTypeEnum.DELAYED

    def involves(self, bridge_id: int) -> bool:
        return bridge_id in self.bridge_ids

    def delay_for(self, bridge_id: int) -> float | None:
        for p in self.participants:
            if p.bridge_id == bridge_id:
                return p.delay_minutes
        return None


class CascadeAlert(BaseModel):
    """A follower opening expected soon because its usual trigger just opened."""
    model_config = ConfigDict(frozen=True)

    target_bridge_id: int
    target_bridge_name: str
    trigger_bridge_id: int
    trigger_bridge_name: str
    expected_time: datetime
    minutes_until_expected: float
    probability: float = Field(ge=0.0, le=1.0)
    cascade_type: CascadeTypeEnum
