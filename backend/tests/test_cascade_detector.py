"""Tests for cascade detection, insights and real-time alerts."""
from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

import pytest

from bridgecast.models.base import CascadeTypeEnum
from bridgecast.modules.cascade_detector import (
    cascade_insights,
    classify_cascade_type,
    detect_cascade_effects,
    get_cascade_alerts,
)

BASE_TIME = datetime(2025, 6, 2, 8, 0, tzinfo=timezone.utc)


# ── Helpers ──────────────────────────────────────────────────────────

def _pair(make_event, start: datetime, delay_minutes: float = 10.0, with_coords: bool = False):
    """Ballard opens for 20 min, Fremont follows after *delay_minutes* for 10 min."""
    return [
        make_event(1, start, 20.0, with_coords=with_coords),
        make_event(2, start + timedelta(minutes=delay_minutes), 10.0, with_coords=with_coords),
    ]


def _daily_pairs(make_event, days: int = 5):
    events = []
    for day in range(days):
        events.extend(_pair(make_event, BASE_TIME + timedelta(days=day)))
    return events


# ── detect_cascade_effects ───────────────────────────────────────────

class TestDetectCascadeEffects:
    def test_two_bridge_cascade(self, make_event):
        cascades = detect_cascade_effects(_pair(make_event, BASE_TIME))
        assert len(cascades) == 1
        cascade = cascades[0]
        assert cascade.bridge_ids == (1, 2)
        assert cascade.trigger_bridge_id == 1
        assert cascade.trigger_time == BASE_TIME
        assert cascade.window_start == BASE_TIME
        assert cascade.window_end == BASE_TIME + timedelta(minutes=30)
        assert cascade.propagation_delay_minutes == pytest.approx(10.0)
        assert cascade.cascade_type == CascadeTypeEnum.SHORT_TERM
        assert cascade.delay_for(2) == pytest.approx(10.0)

    def test_severity_without_coordinates(self, make_event):
        cascade = detect_cascade_effects(_pair(make_event, BASE_TIME))[0]
        # count 1/3, temporal (1.0 overlap + 2/3 delay proximity) / 2, no proximity term
        assert cascade.bridge_count_factor == pytest.approx(1 / 3)
        assert cascade.temporal_factor == pytest.approx(5 / 6)
        assert cascade.proximity_factor is None
        assert cascade.severity == pytest.approx(0.6)

    def test_closer_bridges_score_higher(self, make_event):
        near = detect_cascade_effects(_pair(make_event, BASE_TIME, with_coords=True))[0]
        far_events = [
            make_event(1, BASE_TIME, 20.0),
            make_event(2, BASE_TIME + timedelta(minutes=10), 10.0, latitude=47.2, longitude=-122.9),
        ]
        far = detect_cascade_effects(far_events)[0]
        assert near.proximity_factor > 0.0
        assert far.proximity_factor == 0.0
        assert near.severity > far.severity

    def test_events_outside_window(self, make_event):
        events = [make_event(1, BASE_TIME), make_event(2, BASE_TIME + timedelta(minutes=45))]
        assert detect_cascade_effects(events) == []

    def test_same_bridge_only(self, make_event):
        events = [make_event(1, BASE_TIME + timedelta(minutes=5 * i)) for i in range(6)]
        assert detect_cascade_effects(events) == []

    def test_empty_and_single(self, make_event):
        assert detect_cascade_effects([]) == []
        assert detect_cascade_effects([make_event(1, BASE_TIME)]) == []

    def test_corrupt_events_never_raise(self, make_event, corrupt_event):
        assert detect_cascade_effects([corrupt_event, corrupt_event]) == []
        cascades = detect_cascade_effects(_pair(make_event, BASE_TIME) + [corrupt_event])
        assert len(cascades) == 1

    def test_huge_duration_on_open_bridge_is_dropped(self, make_event):
        events = [
            make_event(1, BASE_TIME, 20.0),
            make_event(2, BASE_TIME + timedelta(minutes=5), 1e20, closed=False),
        ]
        assert detect_cascade_effects(events) == []

    def test_infinite_latitude_scores_without_proximity(self, make_event):
        events = [
            make_event(1, BASE_TIME, 20.0),
            make_event(2, BASE_TIME + timedelta(minutes=10), 10.0, latitude=float("inf")),
        ]
        cascades = detect_cascade_effects(events)
        assert len(cascades) == 1
        assert cascades[0].proximity_factor is None
        assert cascades[0].severity == pytest.approx(0.6)

    def test_distant_future_sentinel_is_dropped(self, make_event):
        sentinel = datetime(9999, 12, 31, 23, 50, tzinfo=timezone.utc)
        events = [make_event(1, BASE_TIME), make_event(2, sentinel, closed=False)]
        assert detect_cascade_effects(events) == []

    def test_burst_collapses_into_one_cascade(self, make_event):
        events = [
            make_event(1, BASE_TIME),
            make_event(2, BASE_TIME + timedelta(minutes=5)),
            make_event(3, BASE_TIME + timedelta(minutes=10)),
        ]
        cascades = detect_cascade_effects(events)
        assert len(cascades) == 1
        assert cascades[0].bridge_ids == (1, 2, 3)
        assert [p.bridge_id for p in cascades[0].participants] == [1, 2, 3]

    def test_chained_windows_emit_distinct_cascades(self, make_event):
        events = [
            make_event(1, BASE_TIME),
            make_event(2, BASE_TIME + timedelta(minutes=20)),
            make_event(3, BASE_TIME + timedelta(minutes=40)),
        ]
        cascades = detect_cascade_effects(events)
        assert [c.bridge_ids for c in cascades] == [(1, 2), (2, 3)]

    def test_simultaneous_openings_tie_break_by_entity_id(self, make_event):
        events = [make_event(3, BASE_TIME), make_event(1, BASE_TIME)]
        cascade = detect_cascade_effects(events)[0]
        assert cascade.trigger_bridge_id == 1
        assert cascade.cascade_type == CascadeTypeEnum.IMMEDIATE

    def test_order_independent(self, make_event):
        events = _daily_pairs(make_event) + [make_event(3, BASE_TIME + timedelta(minutes=3))]
        shuffled = list(events)
        random.Random(7).shuffle(shuffled)
        assert detect_cascade_effects(events) == detect_cascade_effects(shuffled)

    def test_cascade_ids_are_unique(self, make_event):
        cascades = detect_cascade_effects(_daily_pairs(make_event))
        assert len(cascades) == 5
        assert len({c.cascade_id for c in cascades}) == 5

    def test_min_severity_from_config(self, make_event):
        config = {"cascade": {"min_severity": 0.9}}
        assert detect_cascade_effects(_pair(make_event, BASE_TIME), config) == []

    def test_window_from_config(self, make_event):
        events = [make_event(1, BASE_TIME), make_event(2, BASE_TIME + timedelta(minutes=45))]
        cascades = detect_cascade_effects(events, {"cascade": {"window_minutes": 60}})
        assert len(cascades) == 1
        assert cascades[0].cascade_type == CascadeTypeEnum.DELAYED

    def test_only_most_recent_events_scanned(self, make_event):
        events = _pair(make_event, BASE_TIME) + _pair(make_event, BASE_TIME + timedelta(hours=2))
        cascades = detect_cascade_effects(events, {"cascade": {"max_events": 2}})
        assert len(cascades) == 1
        assert cascades[0].window_start == BASE_TIME + timedelta(hours=2)

    def test_severity_bounded(self, hourly_events):
        for cascade in detect_cascade_effects(hourly_events):
            assert 0.0 <= cascade.severity <= 1.0


class TestClassifyCascadeType:
    @pytest.mark.parametrize("delay,expected", [
        (0.0, CascadeTypeEnum.IMMEDIATE),
        (4.9, CascadeTypeEnum.IMMEDIATE),
        (5.0, CascadeTypeEnum.SHORT_TERM),
        (14.9, CascadeTypeEnum.SHORT_TERM),
        (15.0, CascadeTypeEnum.MEDIUM_TERM),
        (29.9, CascadeTypeEnum.MEDIUM_TERM),
        (30.0, CascadeTypeEnum.DELAYED),
    ])
    def test_delay_bands(self, delay, expected):
        assert classify_cascade_type(delay) == expected


# ── Insights and alerts ──────────────────────────────────────────────

class TestCascadeInsights:
    def test_trigger_bridge(self, make_event):
        cascades = detect_cascade_effects(_daily_pairs(make_event))
        insights = cascade_insights(1, cascades)
        assert any("High cascade influence" in s for s in insights)
        assert "Most frequently triggers Fremont Bridge (5 cascade events)" in insights

    def test_follower_bridge(self, make_event):
        cascades = detect_cascade_effects(_daily_pairs(make_event))
        insights = cascade_insights(2, cascades)
        assert any("High cascade susceptibility" in s for s in insights)
        assert "Most frequently triggered by Ballard Bridge (5 cascade events)" in insights

    def test_immediate_responses(self, make_event):
        events = []
        for day in range(3):
            events.extend(_pair(make_event, BASE_TIME + timedelta(days=day), delay_minutes=2.0))
        insights = cascade_insights(1, detect_cascade_effects(events))
        assert "Tends to trigger immediate cascade responses (< 5 minutes)" in insights

    def test_no_cascades(self):
        assert cascade_insights(1, []) == []


class TestCascadeAlerts:
    def test_recent_trigger_raises_alert(self, make_event, bridge_infos):
        cascades = detect_cascade_effects(_daily_pairs(make_event))
        now = BASE_TIME + timedelta(days=10)
        recent = [make_event(1, now - timedelta(minutes=3), 2.0)]
        alerts = get_cascade_alerts(recent, cascades, bridge_infos, now)
        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.target_bridge_id == 2
        assert alert.target_bridge_name == "Fremont Bridge"
        assert alert.trigger_bridge_id == 1
        assert alert.minutes_until_expected == pytest.approx(7.0)
        assert alert.probability == pytest.approx(0.6)

    def test_still_open_trigger_is_ignored(self, make_event, bridge_infos):
        cascades = detect_cascade_effects(_daily_pairs(make_event))
        now = BASE_TIME + timedelta(days=10)
        recent = [make_event(1, now - timedelta(minutes=3), 2.0, closed=False)]
        assert get_cascade_alerts(recent, cascades, bridge_infos, now) == []

    def test_old_trigger_is_ignored(self, make_event, bridge_infos):
        cascades = detect_cascade_effects(_daily_pairs(make_event))
        now = BASE_TIME + timedelta(days=10)
        recent = [make_event(1, now - timedelta(minutes=40), 5.0)]
        assert get_cascade_alerts(recent, cascades, bridge_infos, now) == []

    def test_weak_cascades_do_not_alert(self, make_event, bridge_infos):
        cascades = detect_cascade_effects(_daily_pairs(make_event))
        now = BASE_TIME + timedelta(days=10)
        recent = [make_event(1, now - timedelta(minutes=3), 2.0)]
        config = {"cascade": {"alert_min_severity": 0.9}}
        assert get_cascade_alerts(recent, cascades, bridge_infos, now, config) == []
