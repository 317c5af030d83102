"""Closed streaks: how long each bridge goes without opening.

The current streak runs from a bridge's last opening to the reference time.
Historical streaks are gaps of at least ``streak.min_streak_hours`` between
consecutive openings inside the lookback window. The weekly champion is the
bridge with the longest current streak.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Sequence

from bridgecast.models.drawbridge_event import DrawbridgeEvent, ensure_aware
from bridgecast.models.streak import StreakData, StreakPattern, WeeklyChampion
from bridgecast.modules.normalize import filter_valid_events, group_by_bridge
from bridgecast.modules.prediction_config import config_section

logger = logging.getLogger(__name__)


def _hours_between(a: datetime, b: datetime) -> float:
    return (b - a).total_seconds() / 3600.0


def _streak_patterns(events: Sequence[DrawbridgeEvent], min_hours: float) -> list[StreakPattern]:
    patterns = []
    for a, b in zip(events, events[1:]):
        gap = _hours_between(a.open_datetime, b.open_datetime)
        if gap >= min_hours:
            patterns.append(StreakPattern(start=a.open_datetime, end=b.open_datetime, duration_hours=gap))
    return patterns


def _prediction_confidence(intervals: list[float], mean_hours: float) -> float:
    """Lower spread of the gaps between openings means a more reliable estimate."""
    if len(intervals) < 2:
        return 0.3
    if mean_hours <= 0:
        return 0.1
    mean_deviation = sum(abs(x - mean_hours) for x in intervals) / len(intervals)
    return max(0.1, min(0.95, 1.0 - mean_deviation / mean_hours))


def _confidence_level(event_count: int, streak_count: int, lookback_days: int) -> float:
    density = event_count / lookback_days
    streak_density = streak_count / lookback_days
    return max(0.1, min(0.95, density * 0.6 + streak_density * 0.4))


def _streak_for(
    history: list[DrawbridgeEvent],
    reference_time: datetime,
    lookback_days: int,
    cfg: dict,
) -> StreakData:
    last = history[-1]
    recent = [e for e in history if e.open_datetime >= reference_time - timedelta(days=lookback_days)]
    current = max(0.0, _hours_between(last.open_datetime, reference_time))

    patterns = _streak_patterns(recent, float(cfg.get("min_streak_hours", 12)))
    durations = [p.duration_hours for p in patterns]
    intervals = [_hours_between(a.open_datetime, b.open_datetime) for a, b in zip(recent, recent[1:])]

    next_opening = None
    prediction_confidence = 0.0
    if intervals:
        mean_hours = sum(intervals) / len(intervals)
        next_opening = reference_time + timedelta(hours=max(0.0, mean_hours - current))
        prediction_confidence = _prediction_confidence(intervals, mean_hours)

    return StreakData(
        bridge_id=last.entity_id,
        bridge_name=last.entity_name,
        current_streak_hours=current,
        longest_streak_hours=max(durations, default=0.0),
        average_streak_hours=sum(durations) / len(durations) if durations else 0.0,
        streak_count=len(patterns),
        last_opening=last.open_datetime,
        next_predicted_opening=next_opening,
        prediction_confidence=prediction_confidence,
        confidence=_confidence_level(len(recent), len(patterns), lookback_days),
        patterns=tuple(patterns),
    )


def _reference(valid: list[DrawbridgeEvent], reference_time: datetime | None) -> datetime:
    return ensure_aware(reference_time) if reference_time else max(e.open_datetime for e in valid)


def calculate_streak_data(
    bridge_id: int,
    events: Sequence[DrawbridgeEvent],
    reference_time: datetime | None = None,
    lookback_days: int | None = None,
    config: dict | None = None,
) -> StreakData | None:
    """Streak statistics for one bridge, or None when it has no valid openings.

    *events* may hold every bridge; the reference time defaults to the
    latest valid opening among all of them.
    """
    cfg = config_section(config, "streak")
    valid = filter_valid_events(events, config)
    if not valid:
        return None
    ref = _reference(valid, reference_time)
    history = [e for e in group_by_bridge(valid).get(bridge_id, []) if e.open_datetime <= ref]
    if not history:
        return None
    days = max(1, int(lookback_days if lookback_days is not None else cfg.get("lookback_days", 30)))
    return _streak_for(history, ref, days, cfg)


def historical_context(streak: StreakData, config: dict | None = None) -> str:
    """Describe the current streak against the bridge's own history."""
    cfg = config_section(config, "streak")
    current = streak.current_streak_hours
    if current > streak.longest_streak_hours * float(cfg.get("record_ratio", 0.8)):
        return "Near record-breaking streak"
    if current > streak.average_streak_hours * float(cfg.get("above_average_ratio", 1.5)):
        return "Above average performance"
    if current < streak.average_streak_hours * float(cfg.get("below_average_ratio", 0.5)):
        return "Below average streak"
    return "Typical performance"


def calculate_weekly_champion(
    events: Sequence[DrawbridgeEvent],
    reference_time: datetime | None = None,
    config: dict | None = None,
) -> WeeklyChampion | None:
    """Bridge with the longest current streak; ties go to the lower entity id."""
    cfg = config_section(config, "streak")
    valid = filter_valid_events(events, config)
    if not valid:
        return None
    ref = _reference(valid, reference_time)
    days = max(1, int(cfg.get("champion_lookback_days", 7)))

    best: StreakData | None = None
    for entity_id, bridge_events in sorted(group_by_bridge(valid).items()):
        history = [e for e in bridge_events if e.open_datetime <= ref]
        if not history:
            continue
        streak = _streak_for(history, ref, days, cfg)
        if streak.current_streak_hours <= 0:
            continue
        if best is None or streak.current_streak_hours > best.current_streak_hours:
            best = streak

    if best is None:
        logger.debug("No weekly champion: every bridge opened at the reference time")
        return None
    logger.info("Weekly champion: %s (%.1f h without opening)", best.bridge_name, best.current_streak_hours)
    return WeeklyChampion(
        bridge_id=best.bridge_id,
        bridge_name=best.bridge_name,
        streak_hours=best.current_streak_hours,
        confidence=best.confidence,
        historical_context=historical_context(best, config),
    )
