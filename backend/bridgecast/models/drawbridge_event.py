"""One recorded drawbridge opening.

Records are accepted as delivered by the event catalog, including corrupt
ones (negative durations, blank names, sentinel dates). Validity is decided
by ``bridgecast.modules.normalize.invalid_reason`` so that bad rows can be
filtered instead of rejected at construction time.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, field_validator

from bridgecast.config import settings
from bridgecast.utils.geo import is_valid_coordinate


def _event_tz():
    if settings.EVENT_TIMEZONE.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(settings.EVENT_TIMEZONE)


def ensure_aware(dt: datetime) -> datetime:
    """Attach the configured event timezone to a naive datetime."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=_event_tz())
    return dt


class DrawbridgeEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    entity_type: str
    entity_name: str
    entity_id: int
    open_datetime: datetime
    close_datetime: Optional[datetime] = None
    minutes_open: float
    latitude: float = 0.0
    longitude: float = 0.0

    @field_validator("open_datetime", "close_datetime")
    @classmethod
    def _localize_naive(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is None:
            return v
        return ensure_aware(v)

    @property
    def event_id(self) -> str:
        return f"{self.entity_id}-{int(self.open_datetime.timestamp())}"

    @property
    def is_currently_open(self) -> bool:
        return self.close_datetime is None

    @property
    def effective_close(self) -> datetime:
        """Close time, or open time plus the reported minutes for open bridges."""
        if self.close_datetime is not None:
            return self.close_datetime
        return self.open_datetime + timedelta(minutes=max(self.minutes_open, 0.0))

    @property
    def has_coordinates(self) -> bool:
        """False for the (0, 0) placeholder and for non-finite or out-of-range values."""
        if self.latitude == 0.0 and self.longitude == 0.0:
            return False
        return is_valid_coordinate(self.latitude, self.longitude)
