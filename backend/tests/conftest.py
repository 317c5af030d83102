"""Shared fixtures: synthetic drawbridge events and bridge metadata."""
from datetime import datetime, timedelta, timezone

import pytest

from bridgecast.models.drawbridge_event import DrawbridgeEvent
from bridgecast.models.drawbridge_info import DrawbridgeInfo

# Monday morning; every scenario is built relative to it
BASE_TIME = datetime(2025, 6, 2, 8, 0, tzinfo=timezone.utc)

BRIDGES = {
    1: ("Ballard Bridge", 47.65918, -122.37652),
    2: ("Fremont Bridge", 47.64763, -122.34970),
    3: ("University Bridge", 47.65288, -122.32007),
}


def _event(
    entity_id: int,
    opened: datetime,
    /,
    minutes: float = 10.0,
    *,
    closed: bool = True,
    with_coords: bool = True,
    **overrides,
) -> DrawbridgeEvent:
    name, lat, lon = BRIDGES.get(entity_id, (f"Bridge {entity_id}", 0.0, 0.0))
    fields = dict(
        entity_type="Bridge",
        entity_name=name,
        entity_id=entity_id,
        open_datetime=opened,
        close_datetime=opened + timedelta(minutes=minutes) if closed else None,
        minutes_open=minutes,
        latitude=lat if with_coords else 0.0,
        longitude=lon if with_coords else 0.0,
    )
    fields.update(overrides)
    return DrawbridgeEvent(**fields)


@pytest.fixture
def make_event():
    """Factory: make_event(entity_id, opened, minutes=10.0, closed=True, with_coords=True, **overrides)."""
    return _event


@pytest.fixture
def hourly_events():
    """Three bridges, each with 15 hourly 10-minute openings."""
    return [
        _event(entity_id, BASE_TIME + timedelta(hours=i))
        for entity_id in BRIDGES
        for i in range(15)
    ]


@pytest.fixture
def corrupt_event():
    """Every identifying field broken and a sentinel date in the distant past."""
    return DrawbridgeEvent(
        entity_type="",
        entity_name="",
        entity_id=-1,
        open_datetime=datetime(1900, 1, 1, tzinfo=timezone.utc),
        close_datetime=None,
        minutes_open=-1.0,
    )


@pytest.fixture
def bridge_infos():
    return [
        DrawbridgeInfo(entity_id=eid, entity_name=name, latitude=lat, longitude=lon)
        for eid, (name, lat, lon) in BRIDGES.items()
    ]


@pytest.fixture
def malformed_events():
    """Parseable records with values no real feed row should carry, keyed by defect."""
    opened = BASE_TIME + timedelta(hours=14, minutes=5)
    return {
        "huge_minutes_open": _event(2, opened, 1e20, closed=False),
        "infinite_minutes_open": _event(2, opened, float("inf"), closed=False),
        "nan_minutes_open": _event(2, opened, float("nan"), closed=False),
        "infinite_latitude": _event(2, opened, latitude=float("inf")),
        "nan_longitude": _event(2, opened, longitude=float("nan")),
        "out_of_range_coordinates": _event(2, opened, latitude=123.0, longitude=-500.0),
        "distant_future_open": _event(2, datetime(9999, 12, 31, 23, 50, tzinfo=timezone.utc), closed=False),
        "distant_future_close": _event(
            2, opened, closed=False, close_datetime=datetime(9999, 12, 31, 23, 59, tzinfo=timezone.utc),
        ),
    }
