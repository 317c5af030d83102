"""Opening-volume trends: daily series and period-over-period summary."""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Sequence

from bridgecast.models.base import TrendDirectionEnum
from bridgecast.models.drawbridge_event import DrawbridgeEvent, ensure_aware
from bridgecast.models.trend import DailyTrendPoint, TrendSummary
from bridgecast.modules.normalize import filter_valid_events

logger = logging.getLogger(__name__)

# Relative change inside this band counts as stable
_STABLE_TOLERANCE = 0.10


def calculate_daily_trend(
    events: Sequence[DrawbridgeEvent],
    days: int = 30,
    reference_time: datetime | None = None,
) -> list[DailyTrendPoint]:
    """Per-day opening counts for the *days* days ending at the reference day.

    Days without openings are included with zero counts. Day boundaries follow
    the events' own timezone.
    """
    valid = filter_valid_events(events)
    if days <= 0 or (not valid and reference_time is None):
        return []

    ref = ensure_aware(reference_time) if reference_time else max(e.open_datetime for e in valid)
    last_day = ref.date()
    first_day = last_day - timedelta(days=days - 1)

    counts: dict[date, int] = {first_day + timedelta(days=i): 0 for i in range(days)}
    minutes: dict[date, float] = dict.fromkeys(counts, 0.0)
    for e in valid:
        day = e.open_datetime.astimezone(ref.tzinfo).date()
        if day in counts and e.open_datetime <= ref:
            counts[day] += 1
            minutes[day] += e.minutes_open

    return [
        DailyTrendPoint(day=day, opening_count=counts[day], total_minutes_open=minutes[day])
        for day in sorted(counts)
    ]


def calculate_trend_summary(
    current_events: Sequence[DrawbridgeEvent],
    previous_events: Sequence[DrawbridgeEvent],
) -> TrendSummary:
    """Compare opening counts of two periods."""
    current = len(filter_valid_events(current_events))
    previous = len(filter_valid_events(previous_events))

    if previous > 0:
        change = (current - previous) / previous
        percent_change = change * 100.0
        if change > _STABLE_TOLERANCE:
            direction = TrendDirectionEnum.UP
        elif change < -_STABLE_TOLERANCE:
            direction = TrendDirectionEnum.DOWN
        else:
            direction = TrendDirectionEnum.STABLE
    else:
        percent_change = 0.0
        direction = TrendDirectionEnum.UP if current > 0 else TrendDirectionEnum.STABLE

    return TrendSummary(
        current_total=current,
        previous_total=previous,
        percent_change=percent_change,
        direction=direction,
    )


def events_between(
    events: Sequence[DrawbridgeEvent],
    start: datetime,
    end: datetime,
) -> list[DrawbridgeEvent]:
    """Events opened in [start, end)."""
    start, end = ensure_aware(start), ensure_aware(end)
    return [e for e in events if start <= e.open_datetime < end]


def period_over_period(
    events: Sequence[DrawbridgeEvent],
    days: int,
    reference_time: datetime,
) -> TrendSummary:
    """Summary of the last *days* days against the *days* days before them."""
    ref = ensure_aware(reference_time)
    period = timedelta(days=days)
    current = events_between(events, ref - period, ref)
    previous = events_between(events, ref - 2 * period, ref - period)
    summary = calculate_trend_summary(current, previous)
    logger.debug(
        "Trend over %d day(s): %d vs %d (%s)",
        days, summary.current_total, summary.previous_total, summary.direction.value,
    )
    return summary
