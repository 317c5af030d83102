"""Static bridge metadata; ``entity_id`` joins to DrawbridgeEvent.entity_id."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from bridgecast.utils.geo import is_valid_coordinate


class DrawbridgeInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    entity_id: int
    entity_name: str
    entity_type: str = "Bridge"
    latitude: float = 0.0
    longitude: float = 0.0

    @property
    def has_coordinates(self) -> bool:
        """False for the (0, 0) placeholder and for non-finite or out-of-range values."""
        if self.latitude == 0.0 and self.longitude == 0.0:
            return False
        return is_valid_coordinate(self.latitude, self.longitude)
