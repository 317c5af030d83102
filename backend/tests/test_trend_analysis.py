"""Tests for daily opening trends and period comparisons."""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from bridgecast.models.base import TrendDirectionEnum
from bridgecast.modules.trend_analysis import (
    calculate_daily_trend,
    calculate_trend_summary,
    events_between,
    period_over_period,
)

BASE_TIME = datetime(2025, 6, 2, 8, 0, tzinfo=timezone.utc)


def _events_on(make_event, offsets_hours):
    return [make_event(1, BASE_TIME + timedelta(hours=h)) for h in offsets_hours]


class TestDailyTrend:
    def test_zero_filled_days(self, make_event):
        events = _events_on(make_event, [0, 2, 48])
        trend = calculate_daily_trend(events, days=3, reference_time=BASE_TIME + timedelta(hours=52))
        assert [p.day for p in trend] == [date(2025, 6, 2), date(2025, 6, 3), date(2025, 6, 4)]
        assert [p.opening_count for p in trend] == [2, 0, 1]
        assert trend[0].total_minutes_open == pytest.approx(20.0)

    def test_defaults_to_latest_event(self, make_event):
        trend = calculate_daily_trend(_events_on(make_event, [0, 24]), days=2)
        assert [p.opening_count for p in trend] == [1, 1]

    def test_events_outside_range_ignored(self, make_event):
        events = _events_on(make_event, [0, 24 * 10])
        trend = calculate_daily_trend(events, days=5)
        assert sum(p.opening_count for p in trend) == 1

    def test_corrupt_events_ignored(self, make_event, corrupt_event):
        trend = calculate_daily_trend(_events_on(make_event, [0]) + [corrupt_event], days=1)
        assert [p.opening_count for p in trend] == [1]

    def test_empty(self):
        assert calculate_daily_trend([]) == []


class TestTrendSummary:
    @pytest.mark.parametrize("current,previous,direction", [
        (12, 10, TrendDirectionEnum.UP),
        (11, 10, TrendDirectionEnum.STABLE),
        (10, 10, TrendDirectionEnum.STABLE),
        (8, 10, TrendDirectionEnum.DOWN),
        (3, 0, TrendDirectionEnum.UP),
        (0, 0, TrendDirectionEnum.STABLE),
    ])
    def test_direction(self, make_event, current, previous, direction):
        summary = calculate_trend_summary(
            _events_on(make_event, range(current)),
            _events_on(make_event, range(previous)),
        )
        assert summary.direction == direction
        assert summary.current_total == current
        assert summary.previous_total == previous

    def test_percent_change(self, make_event):
        summary = calculate_trend_summary(_events_on(make_event, range(15)), _events_on(make_event, range(10)))
        assert summary.percent_change == pytest.approx(50.0)


class TestPeriodOverPeriod:
    def test_compares_adjacent_periods(self, make_event):
        # two openings in the previous day, four in the last day
        events = _events_on(make_event, [1, 2, 25, 26, 27, 28])
        summary = period_over_period(events, days=1, reference_time=BASE_TIME + timedelta(hours=48))
        assert summary.previous_total == 2
        assert summary.current_total == 4
        assert summary.direction == TrendDirectionEnum.UP

    def test_events_between_is_half_open(self, make_event):
        events = _events_on(make_event, [0, 1, 2])
        window = events_between(events, BASE_TIME, BASE_TIME + timedelta(hours=2))
        assert len(window) == 2
