"""Drawbridge event normalization and validation.

Two jobs:
  - turn raw catalog rows (open-data feed JSON or CSV exports) into
    DrawbridgeEvent records, skipping rows that cannot be parsed at all;
  - decide which parsed records are usable for aggregation. Corrupt records
    are dropped, never raised on.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

import polars as pl

from bridgecast.models.drawbridge_event import DrawbridgeEvent
from bridgecast.modules.prediction_config import config_section

logger = logging.getLogger(__name__)

_COMMON_TIMESTAMP_FORMATS = [
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M",
]

# Feed column name -> canonical field name
_FIELD_ALIASES = {
    "entitytype": "entity_type",
    "entityname": "entity_name",
    "entityid": "entity_id",
    "opendatetime": "open_datetime",
    "closedatetime": "close_datetime",
    "minutesopen": "minutes_open",
    "lat": "latitude",
    "lon": "longitude",
    "lng": "longitude",
    # camelCase exports
    "entityType": "entity_type",
    "entityName": "entity_name",
    "entityID": "entity_id",
    "openDateTime": "open_datetime",
    "closeDateTime": "close_datetime",
    "minutesOpen": "minutes_open",
}


# --- Validation ---

def invalid_reason(event: DrawbridgeEvent, config: dict | None = None) -> str | None:
    """Return why *event* is unusable for aggregation, or None if it is valid."""
    cfg = config_section(config, "analytics")
    min_year = int(cfg.get("min_valid_year", 1970))
    max_year = int(cfg.get("max_valid_year", 2100))
    max_minutes = float(cfg.get("max_minutes_open", 1440))
    if event.entity_id <= 0:
        return f"Non-positive entity id: {event.entity_id}"
    if not event.entity_type.strip():
        return "Empty entity type"
    if not event.entity_name.strip():
        return "Empty entity name"
    if not math.isfinite(event.minutes_open) or event.minutes_open < 0:
        return f"Invalid minutes open: {event.minutes_open}"
    if event.minutes_open > max_minutes:
        return f"Minutes open above {max_minutes:g}: {event.minutes_open}"
    if event.open_datetime.year < min_year:
        return f"Open time before {min_year}: {event.open_datetime.isoformat()}"
    if event.open_datetime.year > max_year:
        return f"Open time after {max_year}: {event.open_datetime.isoformat()}"
    if event.close_datetime is not None:
        if event.close_datetime < event.open_datetime:
            return "Close time precedes open time"
        if event.close_datetime.year > max_year:
            return f"Close time after {max_year}: {event.close_datetime.isoformat()}"
    return None


def is_valid_event(event: DrawbridgeEvent, config: dict | None = None) -> bool:
    return invalid_reason(event, config) is None


def filter_valid_events(
    events: Iterable[DrawbridgeEvent],
    config: dict | None = None,
) -> list[DrawbridgeEvent]:
    """Drop corrupt records; logs how many were discarded."""
    valid: list[DrawbridgeEvent] = []
    dropped = 0
    for event in events:
        reason = invalid_reason(event, config)
        if reason is None:
            valid.append(event)
        else:
            dropped += 1
            logger.debug("Dropping event for entity %s: %s", event.entity_id, reason)
    if dropped:
        logger.debug("Filtered %d invalid event(s), %d remain", dropped, len(valid))
    return valid


# --- Parsing ---

def parse_timestamp_flexible(ts: Any) -> datetime | None:
    """Parse a timestamp from various formats.

    Returns a datetime object or None if parsing fails.
    Supports: ISO 8601, Unix epoch, and common strftime formats. Naive
    results are left naive; DrawbridgeEvent localizes them.
    """
    if isinstance(ts, datetime):
        return ts

    if isinstance(ts, (int, float)) and not isinstance(ts, bool):
        try:
            return datetime.fromtimestamp(ts, tz=timezone.utc)
        except (OSError, ValueError, OverflowError):
            return None

    if isinstance(ts, str):
        ts_str = ts.strip()
        if not ts_str:
            return None

        try:
            return datetime.fromisoformat(ts_str.replace("Z", "+00:00"))
        except ValueError:
            pass

        for fmt in _COMMON_TIMESTAMP_FORMATS:
            try:
                return datetime.strptime(ts_str, fmt)
            except ValueError:
                continue

    return None


def _to_float(value: Any, default: float | None = None) -> float | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _canonical_keys(record: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in record.items():
        out[_FIELD_ALIASES.get(key, key)] = value
    return out


def event_from_record(record: Mapping[str, Any]) -> DrawbridgeEvent | None:
    """Build a DrawbridgeEvent from a raw feed row.

    Returns None when the row lacks a parseable entity id, open time or
    duration. Parseable-but-corrupt values are kept so that validation can
    report them.
    """
    row = _canonical_keys(record)

    entity_id = _to_float(row.get("entity_id"))
    open_dt = parse_timestamp_flexible(row.get("open_datetime"))
    minutes_open = _to_float(row.get("minutes_open"))
    if entity_id is None or open_dt is None or minutes_open is None:
        return None
    if not math.isfinite(entity_id):
        return None

    close_dt = parse_timestamp_flexible(row.get("close_datetime"))
    return DrawbridgeEvent(
        entity_type=str(row.get("entity_type") or ""),
        entity_name=str(row.get("entity_name") or ""),
        entity_id=int(entity_id),
        open_datetime=open_dt,
        close_datetime=close_dt,
        minutes_open=minutes_open,
        latitude=_to_float(row.get("latitude"), 0.0),
        longitude=_to_float(row.get("longitude"), 0.0),
    )


def events_from_records(records: Iterable[Mapping[str, Any]]) -> list[DrawbridgeEvent]:
    events: list[DrawbridgeEvent] = []
    skipped = 0
    for record in records:
        event = event_from_record(record)
        if event is None:
            skipped += 1
            continue
        events.append(event)
    if skipped:
        logger.info("Skipped %d unparseable event record(s)", skipped)
    return events


def normalize_events_dataframe(df: pl.DataFrame) -> pl.DataFrame:
    """Rename feed column aliases to canonical field names."""
    actual_renames: dict[str, str] = {}
    for k, v in _FIELD_ALIASES.items():
        if k in df.columns and v not in df.columns and v not in actual_renames.values():
            actual_renames[k] = v
    if actual_renames:
        df = df.rename(actual_renames)
    return df


def load_events_csv(path: str | Path) -> list[DrawbridgeEvent]:
    """Read an events CSV export; every column is read as text and parsed here."""
    df = pl.read_csv(path, infer_schema_length=0)
    df = normalize_events_dataframe(df)
    logger.info("Loaded %d row(s) from %s", df.height, path)
    return events_from_records(df.to_dicts())


def group_by_bridge(events: Iterable[DrawbridgeEvent]) -> dict[int, list[DrawbridgeEvent]]:
    """Group events by entity id, each group sorted by open time."""
    groups: dict[int, list[DrawbridgeEvent]] = {}
    for event in events:
        groups.setdefault(event.entity_id, []).append(event)
    for group in groups.values():
        group.sort(key=lambda e: e.open_datetime)
    return groups
