"""Tests for closed streaks, the weekly champion and streak formatting."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from bridgecast.models.streak import StreakData, format_hours
from bridgecast.modules.streak_analytics import (
    calculate_streak_data,
    calculate_weekly_champion,
    historical_context,
)

BASE_TIME = datetime(2025, 6, 2, 8, 0, tzinfo=timezone.utc)


# ── Helpers ──────────────────────────────────────────────────────────

def _history(make_event):
    """Ballard at +0h, +1h, +14h, +16h; Fremont at +2h; University at +20h."""
    events = [make_event(1, BASE_TIME + timedelta(hours=h)) for h in (0, 1, 14, 16)]
    events.append(make_event(2, BASE_TIME + timedelta(hours=2)))
    events.append(make_event(3, BASE_TIME + timedelta(hours=20)))
    return events


def _streak(current, longest, average):
    return StreakData(
        bridge_id=1,
        bridge_name="Ballard Bridge",
        current_streak_hours=current,
        longest_streak_hours=longest,
        average_streak_hours=average,
        confidence=0.5,
    )


# ── calculate_streak_data ────────────────────────────────────────────

class TestCalculateStreakData:
    def test_current_and_historical_streaks(self, make_event):
        streak = calculate_streak_data(1, _history(make_event))
        # reference defaults to University's opening at +20h
        assert streak.current_streak_hours == pytest.approx(4.0)
        assert streak.last_opening == BASE_TIME + timedelta(hours=16)
        assert streak.streak_count == 1
        assert streak.longest_streak_hours == pytest.approx(13.0)
        assert streak.average_streak_hours == pytest.approx(13.0)
        assert streak.patterns[0].start == BASE_TIME + timedelta(hours=1)

    def test_next_opening_from_mean_interval(self, make_event):
        streak = calculate_streak_data(1, _history(make_event))
        # intervals 1h, 13h, 2h; 16/3 h mean minus the 4h already elapsed
        assert streak.next_predicted_opening == BASE_TIME + timedelta(hours=21, minutes=20)

    def test_irregular_history_has_floor_confidence(self, make_event):
        streak = calculate_streak_data(1, _history(make_event))
        assert streak.prediction_confidence == pytest.approx(0.1)
        assert streak.confidence == pytest.approx(0.1)
        assert streak.status == "poor"
        assert historical_context(streak) == "Below average streak"

    def test_regular_openings_raise_prediction_confidence(self, make_event):
        events = [make_event(1, BASE_TIME + timedelta(hours=6 * i)) for i in range(5)]
        streak = calculate_streak_data(1, events, reference_time=BASE_TIME + timedelta(hours=25))
        assert streak.prediction_confidence == pytest.approx(0.95)
        assert streak.next_predicted_opening == BASE_TIME + timedelta(hours=30)

    def test_lookback_limits_historical_streaks(self, make_event):
        events = _history(make_event) + [make_event(1, BASE_TIME - timedelta(days=10))]
        month = calculate_streak_data(1, events)
        week = calculate_streak_data(1, events, lookback_days=7)
        assert month.streak_count == 2
        assert month.longest_streak_hours == pytest.approx(240.0)
        assert week == calculate_streak_data(1, _history(make_event), lookback_days=7)

    def test_events_after_reference_are_ignored(self, make_event):
        streak = calculate_streak_data(1, _history(make_event), reference_time=BASE_TIME + timedelta(hours=15))
        assert streak.last_opening == BASE_TIME + timedelta(hours=14)
        assert streak.current_streak_hours == pytest.approx(1.0)

    def test_single_opening_has_no_prediction(self, make_event):
        streak = calculate_streak_data(2, _history(make_event))
        assert streak.current_streak_hours == pytest.approx(18.0)
        assert streak.next_predicted_opening is None
        assert streak.prediction_confidence == 0.0

    def test_unknown_bridge_and_empty_input(self, make_event, corrupt_event):
        assert calculate_streak_data(9, _history(make_event)) is None
        assert calculate_streak_data(1, []) is None
        assert calculate_streak_data(1, [corrupt_event]) is None


# ── Weekly champion ──────────────────────────────────────────────────

class TestWeeklyChampion:
    def test_longest_current_streak_wins(self, make_event):
        champion = calculate_weekly_champion(_history(make_event))
        assert champion.bridge_id == 2
        assert champion.bridge_name == "Fremont Bridge"
        assert champion.streak_hours == pytest.approx(18.0)
        assert champion.historical_context == "Near record-breaking streak"
        assert champion.confidence == pytest.approx(0.1)

    def test_explicit_reference_time(self, make_event):
        champion = calculate_weekly_champion(_history(make_event), BASE_TIME + timedelta(hours=40))
        assert champion.bridge_id == 2
        assert champion.streak_hours == pytest.approx(38.0)

    def test_tie_goes_to_lower_entity_id(self, make_event):
        events = [make_event(3, BASE_TIME), make_event(2, BASE_TIME)]
        champion = calculate_weekly_champion(events, BASE_TIME + timedelta(hours=5))
        assert champion.bridge_id == 2

    def test_no_champion(self, make_event, corrupt_event):
        assert calculate_weekly_champion([]) is None
        assert calculate_weekly_champion([corrupt_event]) is None
        # every bridge opened exactly at the reference time
        assert calculate_weekly_champion([make_event(1, BASE_TIME)]) is None


# ── Context, status and formatting ───────────────────────────────────

class TestStreakDescriptions:
    @pytest.mark.parametrize("current,longest,average,status", [
        (20.0, 24.0, 10.0, "record"),
        (13.0, 30.0, 10.0, "good"),
        (10.0, 30.0, 10.0, "normal"),
        (5.0, 30.0, 10.0, "poor"),
    ])
    def test_status(self, current, longest, average, status):
        assert _streak(current, longest, average).status == status

    @pytest.mark.parametrize("current,longest,average,context", [
        (20.0, 24.0, 10.0, "Near record-breaking streak"),
        (16.0, 30.0, 10.0, "Above average performance"),
        (4.0, 30.0, 10.0, "Below average streak"),
        (10.0, 30.0, 10.0, "Typical performance"),
    ])
    def test_historical_context(self, current, longest, average, context):
        assert historical_context(_streak(current, longest, average)) == context

    @pytest.mark.parametrize("hours,text", [(7.9, "7h"), (72.0, "3d 0h"), (84.5, "3d 12h")])
    def test_format_hours(self, hours, text):
        assert format_hours(hours) == text

    def test_formatted_properties(self):
        streak = _streak(30.0, 50.0, 20.0)
        assert streak.formatted_current_streak == "1d 6h"
        assert streak.formatted_longest_streak == "2d 2h"
