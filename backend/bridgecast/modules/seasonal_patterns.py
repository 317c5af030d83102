"""Seasonal decomposition of opening counts.

Each bridge's openings are bucketed into (year, month, weekday, hour) slots
and the slot counts split into three parts:
  - trend: centred moving average over ``seasonal.trend_window`` slots;
  - seasonal: how far the slot's weekday, month and hour means sit above
    their overall means, summed;
  - residual: whatever is left, so trend + seasonal + residual == count.

Slot probability starts from openings per calendar occurrence of the slot
and is nudged by the trend direction, the seasonal component, and the
weekend / rush-hour / summer / holiday adjustments from config.
"""
from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta
from typing import Sequence

from bridgecast.models.drawbridge_event import DrawbridgeEvent
from bridgecast.models.seasonal import SeasonalSlot
from bridgecast.modules.normalize import filter_valid_events, group_by_bridge
from bridgecast.modules.prediction_config import config_section

logger = logging.getLogger(__name__)

_DEFAULT_SUMMER_MONTHS = (5, 6, 7, 8, 9)
_DEFAULT_RUSH_HOURS = (7, 8, 9, 16, 17, 18)
_MONDAY = 0
_SATURDAY = 5

# (year, month, weekday, hour)
SlotKey = tuple[int, int, int, int]


def _flags(month: int, weekday: int, hour: int, cfg: dict) -> tuple[bool, bool, bool]:
    weekend = weekday >= _SATURDAY
    rush = not weekend and hour in set(cfg.get("rush_hours", _DEFAULT_RUSH_HOURS))
    summer = month in set(cfg.get("summer_months", _DEFAULT_SUMMER_MONTHS))
    return weekend, rush, summer


def _holiday_adjustment(month: int, weekday: int, cfg: dict) -> float:
    # July, plus the Memorial Day and Labor Day Mondays
    if month == 7 or (month in (5, 9) and weekday == _MONDAY):
        return float(cfg.get("holiday_adjustment", 0.30))
    return 0.0


def _adjustment_for(weekend: bool, rush: bool, summer: bool, cfg: dict) -> float:
    adjustment = 0.0
    if weekend:
        adjustment += float(cfg.get("weekend_adjustment", 0.15))
    if rush:
        adjustment += float(cfg.get("rush_hour_adjustment", -0.10))
    if summer:
        adjustment += float(cfg.get("summer_adjustment", 0.20))
    return adjustment


def _multiplier_for(weekend: bool, rush: bool, summer: bool, cfg: dict) -> float:
    multiplier = 1.0
    if weekend:
        multiplier *= float(cfg.get("weekend_duration_multiplier", 1.2))
    if summer:
        multiplier *= float(cfg.get("summer_duration_multiplier", 1.15))
    if rush:
        multiplier *= float(cfg.get("rush_hour_duration_multiplier", 0.9))
    return multiplier


def pattern_flags(moment: datetime, config: dict | None = None) -> tuple[bool, bool, bool]:
    """(weekend, weekday rush hour, summer) for a point in time."""
    return _flags(moment.month, moment.weekday(), moment.hour, config_section(config, "seasonal"))


def pattern_adjustment(moment: datetime, config: dict | None = None) -> float:
    """Additive probability shift for the weekend, rush-hour and summer patterns."""
    cfg = config_section(config, "seasonal")
    return _adjustment_for(*_flags(moment.month, moment.weekday(), moment.hour, cfg), cfg)


def seasonal_duration_multiplier(moment: datetime, config: dict | None = None) -> float:
    """Scale applied to the mean opening duration at *moment*."""
    cfg = config_section(config, "seasonal")
    return _multiplier_for(*_flags(moment.month, moment.weekday(), moment.hour, cfg), cfg)


def _slot_occurrences(first: date, last: date) -> Counter:
    """Days per (year, month, weekday) between two dates, inclusive."""
    occurrences: Counter = Counter()
    day = first
    while day <= last:
        occurrences[(day.year, day.month, day.weekday())] += 1
        day += timedelta(days=1)
    return occurrences


def _moving_average(counts: list[int], half_window: int) -> list[float]:
    out = []
    for i in range(len(counts)):
        window = counts[max(0, i - half_window): i + half_window + 1]
        out.append(sum(window) / len(window))
    return out


def _seasonal_components(keys: list[SlotKey], counts: list[int]) -> list[float]:
    seasonal = [0.0] * len(keys)
    for pos in (2, 1, 3):  # weekday, month, hour
        grouped: dict[int, list[int]] = defaultdict(list)
        for key, count in zip(keys, counts):
            grouped[key[pos]].append(count)
        means = {value: sum(cs) / len(cs) for value, cs in grouped.items()}
        overall = sum(means.values()) / len(means)
        for i, key in enumerate(keys):
            seasonal[i] += means[key[pos]] - overall
    return seasonal


def _decompose_bridge(events: list[DrawbridgeEvent], cfg: dict) -> list[SeasonalSlot]:
    durations: dict[SlotKey, list[float]] = defaultdict(list)
    for event in events:
        t = event.open_datetime
        durations[(t.year, t.month, t.weekday(), t.hour)].append(event.minutes_open)

    keys = sorted(durations)
    counts = [len(durations[k]) for k in keys]
    half_window = max(0, int(cfg.get("trend_window", 24)) // 2)
    trend = _moving_average(counts, half_window)
    seasonal = _seasonal_components(keys, counts)
    occurrences = _slot_occurrences(events[0].open_datetime.date(), events[-1].open_datetime.date())
    mean_count = sum(counts) / len(counts)
    trend_step = float(cfg.get("trend_adjustment", 0.10))
    seasonal_weight = float(cfg.get("seasonal_component_weight", 0.05))

    slots: list[SeasonalSlot] = []
    for key, count, t, s in zip(keys, counts, trend, seasonal):
        year, month, weekday, hour = key
        weekend, rush, summer = _flags(month, weekday, hour, cfg)
        holiday = _holiday_adjustment(month, weekday, cfg)
        seen = max(1, occurrences[(year, month, weekday)])
        base = min(1.0, count / seen)

        trend_shift = trend_step if t > mean_count else -trend_step if t < mean_count else 0.0
        probability = (
            base + trend_shift + s * seasonal_weight
            + _adjustment_for(weekend, rush, summer, cfg) + holiday
        )

        minutes = durations[key]
        mean_minutes = sum(minutes) / count
        if count > 1:
            spread = (max(minutes) - min(minutes)) / max(mean_minutes, 1.0)
            variability = max(0.0, 1.0 - spread / 10.0)
        else:
            variability = 0.0
        confidence = (min(count / 10.0, 1.0) + variability + min(1.0, abs(s) / 10.0)) / 3.0

        slots.append(SeasonalSlot(
            entity_id=events[0].entity_id,
            entity_name=events[-1].entity_name,
            year=year,
            month=month,
            weekday=weekday,
            hour=hour,
            opening_count=count,
            occurrences=seen,
            mean_minutes_open=mean_minutes,
            trend=t,
            seasonal=s,
            residual=count - t - s,
            is_weekend=weekend,
            is_rush_hour=rush,
            is_summer=summer,
            holiday_adjustment=holiday,
            base_probability=base,
            opening_probability=max(0.0, min(1.0, probability)),
            expected_duration_minutes=mean_minutes * _multiplier_for(weekend, rush, summer, cfg),
            confidence=max(0.0, min(1.0, confidence)),
        ))
    return slots


def decompose(events: Sequence[DrawbridgeEvent], config: dict | None = None) -> list[SeasonalSlot]:
    """Seasonal slots for every bridge with valid events, sorted by bridge then time slot."""
    cfg = config_section(config, "seasonal")
    valid = filter_valid_events(events, config)
    groups = group_by_bridge(valid)
    slots: list[SeasonalSlot] = []
    for entity_id in sorted(groups):
        slots.extend(_decompose_bridge(groups[entity_id], cfg))
    logger.debug("Seasonal decomposition: %d slot(s) for %d bridge(s)", len(slots), len(groups))
    return slots
