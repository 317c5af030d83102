"""Per-bridge opening statistics and baseline opening probability.

Reduces a raw event collection into one BridgeAnalytics per bridge:
  - duration statistics (count, total, mean, median, longest, shortest);
  - hour-of-day and weekday histograms with the peak hour;
  - a baseline probability: the share of hour buckets in the trailing
    analysis window that saw at least one opening.

The reference time defaults to the latest valid opening in the input, so the
result is a pure function of the events. Corrupt records are filtered out
first (see normalize.invalid_reason).
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Sequence

from bridgecast.models.base import PredictionSourceEnum
from bridgecast.models.bridge_analytics import BridgeAnalytics
from bridgecast.models.cascade_event import CascadeEvent
from bridgecast.models.drawbridge_event import DrawbridgeEvent, ensure_aware
from bridgecast.models.drawbridge_info import DrawbridgeInfo
from bridgecast.models.prediction import Prediction, PredictionFactors
from bridgecast.models.seasonal import SeasonalSlot
from bridgecast.modules.normalize import filter_valid_events, group_by_bridge
from bridgecast.modules.prediction_config import config_section

logger = logging.getLogger(__name__)

_BUCKET = timedelta(hours=1)


def _percentile(values: Sequence[float], pct: float) -> float:
    """Compute the pct-th percentile of a list of values using linear interpolation."""
    if not values:
        return 0.0
    sorted_vals = sorted(values)
    n = len(sorted_vals)
    if n == 1:
        return float(sorted_vals[0])
    rank = (pct / 100.0) * (n - 1)
    lower = int(math.floor(rank))
    upper = min(lower + 1, n - 1)
    frac = rank - lower
    return sorted_vals[lower] + frac * (sorted_vals[upper] - sorted_vals[lower])


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


def baseline_probability(
    events: Sequence[DrawbridgeEvent],
    reference_time: datetime,
    window_hours: float = 24,
) -> tuple[float, datetime]:
    """Share of hourly buckets in the trailing window that contain an opening.

    The window starts at ``reference_time - window_hours`` or at the bridge's
    first opening, whichever is later, so a young bridge is not penalised
    for hours before it had any history. Returns (probability, window_start).
    """
    opens = [e.open_datetime for e in events if e.open_datetime <= reference_time]
    window_start = reference_time - timedelta(hours=window_hours)
    if not opens:
        return 0.0, window_start
    window_start = max(window_start, min(opens))

    bucket_count = int((reference_time - window_start) // _BUCKET) + 1
    occupied = {
        int((t - window_start) // _BUCKET)
        for t in opens
        if t >= window_start
    }
    return _clamp(len(occupied) / bucket_count), window_start


def _analytics_confidence(durations: list[float], cfg: dict) -> float:
    n = len(durations)
    half = float(cfg.get("sample_half_saturation", 5))
    sample_factor = n / (n + half) if n + half > 0 else 0.0

    mean = sum(durations) / n
    if mean > 0:
        variability = _clamp(1.0 - (max(durations) - min(durations)) / mean / 10.0)
    else:
        variability = 1.0

    w_sample = float(cfg.get("sample_weight", 0.6))
    w_var = float(cfg.get("variability_weight", 0.4))
    total = w_sample + w_var
    if total <= 0:
        return _clamp(sample_factor)
    return _clamp((w_sample * sample_factor + w_var * variability) / total)


def _analyze_bridge(
    events: list[DrawbridgeEvent],
    reference_time: datetime,
    cfg: dict,
) -> BridgeAnalytics:
    first = events[0]
    durations = [e.minutes_open for e in events]
    n = len(durations)

    hourly = [0] * 24
    weekday = [0] * 7
    for e in events:
        hourly[e.open_datetime.hour] += 1
        weekday[e.open_datetime.weekday()] += 1
    peak_hour = max(range(24), key=lambda h: (hourly[h], -h))

    probability, window_start = baseline_probability(
        events, reference_time, float(cfg.get("window_hours", 24)),
    )
    confidence = _analytics_confidence(durations, cfg)
    mean = sum(durations) / n
    latest = events[-1]

    prediction = Prediction(
        bridge_id=first.entity_id,
        entity_name=first.entity_name,
        probability=probability,
        confidence=confidence,
        expected_duration_minutes=mean,
        sample_count=n,
        source=PredictionSourceEnum.BASELINE,
        factors=PredictionFactors(baseline_probability=probability),
        reasoning=f"{n} opening(s); baseline rate over trailing window",
    )

    return BridgeAnalytics(
        entity_id=first.entity_id,
        entity_name=first.entity_name,
        opening_count=n,
        total_minutes_open=sum(durations),
        mean_minutes_open=mean,
        median_minutes_open=_percentile(durations, 50),
        longest_minutes_open=max(durations),
        shortest_minutes_open=min(durations),
        hourly_distribution=tuple(hourly),
        weekday_distribution=tuple(weekday),
        peak_hour=peak_hour,
        baseline_probability=probability,
        confidence=confidence,
        window_start=window_start,
        window_end=reference_time,
        last_opened_at=latest.open_datetime,
        is_currently_open=latest.is_currently_open,
        current_prediction=prediction,
    )


def calculate_analytics(
    events: Sequence[DrawbridgeEvent],
    config: dict | None = None,
    reference_time: datetime | None = None,
) -> list[BridgeAnalytics]:
    """Compute one BridgeAnalytics per bridge with at least one valid event.

    Never raises on corrupt or empty input; the result is sorted by entity id.
    """
    cfg = config_section(config, "analytics")
    valid = filter_valid_events(events, config)
    if not valid:
        return []

    ref = ensure_aware(reference_time) if reference_time else max(e.open_datetime for e in valid)
    groups = group_by_bridge(valid)
    results = [_analyze_bridge(groups[entity_id], ref, cfg) for entity_id in sorted(groups)]
    logger.debug(
        "Analytics: %d bridge(s) from %d valid of %d event(s)",
        len(results), len(valid), len(events),
    )
    return results


def find_analytics(entity_id: int, analytics: Sequence[BridgeAnalytics]) -> BridgeAnalytics | None:
    for entry in analytics:
        if entry.entity_id == entity_id:
            return entry
    return None


def get_current_prediction(
    bridge: DrawbridgeInfo,
    analytics: Sequence[BridgeAnalytics],
) -> Prediction | None:
    """Baseline prediction for *bridge*, or None when it has no analytics."""
    entry = find_analytics(bridge.entity_id, analytics)
    if entry is None or entry.current_prediction is None:
        return None
    return entry.current_prediction.model_copy(update={"entity_name": bridge.entity_name})


def cascade_profile(bridge_id: int, cascades: Sequence[CascadeEvent]) -> dict:
    """How strongly a bridge drives, and follows, cascades.

    Returns:
        ``{"influence": float, "susceptibility": float,
        "triggered_count": int, "followed_count": int}`` where influence is
        the mean severity of cascades the bridge triggered and susceptibility
        the mean severity of cascades it joined as a follower.
    """
    triggered = [c.severity for c in cascades if c.trigger_bridge_id == bridge_id]
    followed = [
        c.severity for c in cascades
        if c.trigger_bridge_id != bridge_id and c.involves(bridge_id)
    ]
    return {
        "influence": sum(triggered) / len(triggered) if triggered else 0.0,
        "susceptibility": sum(followed) / len(followed) if followed else 0.0,
        "triggered_count": len(triggered),
        "followed_count": len(followed),
    }


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def generate_insights(
    bridge_id: int,
    slots: Sequence[SeasonalSlot],
    config: dict | None = None,
) -> list[str]:
    """Seasonal observations for one bridge from its decomposed time slots."""
    cfg = config_section(config, "seasonal")
    mine = [s for s in slots if s.entity_id == bridge_id]
    insights: list[str] = []

    weekend = [s.opening_probability for s in mine if s.is_weekend]
    weekday = [s.opening_probability for s in mine if not s.is_weekend]
    if weekend and weekday and _mean(weekday) > 0:
        ratio = _mean(weekend) / _mean(weekday)
        if ratio > float(cfg.get("weekend_ratio_insight", 1.2)):
            insights.append(f"Weekend openings are {(ratio - 1) * 100:.0f}% more frequent than weekdays")

    summer = [s.opening_probability for s in mine if s.is_summer]
    other = [s.opening_probability for s in mine if not s.is_summer]
    if summer and other and _mean(other) > 0:
        ratio = _mean(summer) / _mean(other)
        if ratio > float(cfg.get("summer_ratio_insight", 1.1)):
            insights.append(f"Summer months show {(ratio - 1) * 100:.0f}% increase in bridge activity")

    rush = [s.opening_probability for s in mine if s.is_rush_hour]
    if rush and _mean(rush) < float(cfg.get("quiet_rush_hour_probability", 0.1)):
        insights.append("Bridge activity is significantly reduced during rush hours")

    return insights
