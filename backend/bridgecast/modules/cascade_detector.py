"""Cascade detection: correlated openings across different bridges.

Valid events are sorted by (open time, entity id). Every event anchors a
window of ``cascade.window_minutes``. When that window holds openings from
two or more distinct bridges, the first opening per bridge forms a candidate
cascade with the anchor as trigger.

Severity is a weighted mean of three factors in [0, 1]:
  - bridge count: (n - 1) / (full_bridge_count - 1), saturating;
  - temporal: mean of interval overlap with the trigger and delay proximity;
  - proximity: 1 - mean pairwise distance / proximity_radius_m. Dropped
    (weights renormalised) when any participant lacks coordinates.

A candidate whose event set is already covered by an overlapping emitted
cascade is suppressed, so a burst of openings yields one cascade rather than
one per anchor.
"""
from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from itertools import combinations
from typing import Sequence

from bridgecast.models.base import CascadeTypeEnum
from bridgecast.models.cascade_event import CascadeAlert, CascadeEvent, CascadeParticipant
from bridgecast.models.drawbridge_event import DrawbridgeEvent, ensure_aware
from bridgecast.models.drawbridge_info import DrawbridgeInfo
from bridgecast.modules.normalize import filter_valid_events
from bridgecast.modules.prediction_config import config_section
from bridgecast.utils.geo import haversine_meters

logger = logging.getLogger(__name__)


def classify_cascade_type(delay_minutes: float) -> CascadeTypeEnum:
    if delay_minutes < 5:
        return CascadeTypeEnum.IMMEDIATE
    if delay_minutes < 15:
        return CascadeTypeEnum.SHORT_TERM
    if delay_minutes < 30:
        return CascadeTypeEnum.MEDIUM_TERM
    return CascadeTypeEnum.DELAYED


def _overlap_ratio(a: DrawbridgeEvent, b: DrawbridgeEvent) -> float:
    """Shared open time as a fraction of the shorter of the two openings."""
    a_end, b_end = a.effective_close, b.effective_close
    shortest = min((a_end - a.open_datetime), (b_end - b.open_datetime)).total_seconds()
    if shortest <= 0:
        return 0.0
    shared = (min(a_end, b_end) - max(a.open_datetime, b.open_datetime)).total_seconds()
    return max(0.0, min(1.0, shared / shortest))


def _proximity_factor(members: Sequence[DrawbridgeEvent], radius_m: float) -> float | None:
    if radius_m <= 0 or not all(e.has_coordinates for e in members):
        return None
    distances = [
        haversine_meters(a.latitude, a.longitude, b.latitude, b.longitude)
        for a, b in combinations(members, 2)
    ]
    mean_distance = sum(distances) / len(distances)
    return max(0.0, 1.0 - mean_distance / radius_m)


def _score_candidate(
    members: list[DrawbridgeEvent],
    cfg: dict,
    window_minutes: float,
) -> tuple[float, float, float, float | None, list[float]]:
    """Return (severity, count factor, temporal factor, proximity factor, delays)."""
    trigger, followers = members[0], members[1:]
    full = int(cfg.get("full_bridge_count", 4))
    count_factor = min(1.0, (len(members) - 1) / (full - 1)) if full > 1 else 1.0

    delays = [(e.open_datetime - trigger.open_datetime).total_seconds() / 60.0 for e in followers]
    mean_delay = sum(delays) / len(delays)
    delay_proximity = max(0.0, 1.0 - mean_delay / window_minutes) if window_minutes > 0 else 0.0
    overlap = sum(_overlap_ratio(trigger, e) for e in followers) / len(followers)
    temporal_factor = (overlap + delay_proximity) / 2.0

    proximity = _proximity_factor(members, float(cfg.get("proximity_radius_m", 5000)))

    w_count = float(cfg.get("bridge_count_weight", 0.35))
    w_temporal = float(cfg.get("temporal_weight", 0.40))
    w_proximity = float(cfg.get("proximity_weight", 0.25))
    weighted = w_count * count_factor + w_temporal * temporal_factor
    total = w_count + w_temporal
    if proximity is not None:
        weighted += w_proximity * proximity
        total += w_proximity
    severity = weighted / total if total > 0 else 0.0
    return max(0.0, min(1.0, severity)), count_factor, temporal_factor, proximity, delays


def detect_cascade_effects(
    events: Sequence[DrawbridgeEvent],
    config: dict | None = None,
) -> list[CascadeEvent]:
    """Detect cascades in *events*; empty, single or corrupt input yields []."""
    cfg = config_section(config, "cascade")
    window_minutes = float(cfg.get("window_minutes", 30))
    max_events = int(cfg.get("max_events", 5000))
    min_severity = float(cfg.get("min_severity", 0.0))
    window = timedelta(minutes=window_minutes)

    valid = filter_valid_events(events, config)
    if len(valid) < 2:
        return []
    valid.sort(key=lambda e: (e.open_datetime, e.entity_id))
    if max_events > 0 and len(valid) > max_events:
        logger.debug("Cascade scan limited to the %d most recent of %d events", max_events, len(valid))
        valid = valid[-max_events:]

    cascades: list[CascadeEvent] = []
    seen_keys: set[tuple[tuple[int, ...], datetime]] = set()
    # (event ids, window end) of emitted cascades that may still overlap
    active: list[tuple[frozenset[str], datetime]] = []

    for i, anchor in enumerate(valid):
        window_start = anchor.open_datetime
        window_end = window_start + window
        active = [(ids, end) for ids, end in active if end >= window_start]

        first_by_bridge: dict[int, DrawbridgeEvent] = {}
        k = i
        while k < len(valid) and valid[k].open_datetime <= window_end:
            first_by_bridge.setdefault(valid[k].entity_id, valid[k])
            k += 1
        if len(first_by_bridge) < 2:
            continue

        members = list(first_by_bridge.values())
        bridge_ids = tuple(sorted(first_by_bridge))
        key = (bridge_ids, window_start)
        event_ids = frozenset(e.event_id for e in members)
        if key in seen_keys or any(event_ids <= ids for ids, _ in active):
            continue

        severity, count_factor, temporal_factor, proximity, delays = _score_candidate(
            members, cfg, window_minutes,
        )
        if severity < min_severity:
            continue

        seen_keys.add(key)
        active.append((event_ids, window_end))
        propagation_delay = sum(delays) / len(delays)
        participants = tuple(
            CascadeParticipant(
                bridge_id=e.entity_id,
                bridge_name=e.entity_name,
                event_id=e.event_id,
                opened_at=e.open_datetime,
                minutes_open=e.minutes_open,
                delay_minutes=(e.open_datetime - anchor.open_datetime).total_seconds() / 60.0,
            )
            for e in members
        )
        cascades.append(CascadeEvent(
            cascade_id=f"{'-'.join(str(b) for b in bridge_ids)}@{window_start.isoformat()}",
            bridge_ids=bridge_ids,
            participants=participants,
            trigger_bridge_id=anchor.entity_id,
            trigger_bridge_name=anchor.entity_name,
            trigger_event_id=anchor.event_id,
            trigger_time=anchor.open_datetime,
            window_start=window_start,
            window_end=window_end,
            propagation_delay_minutes=propagation_delay,
            severity=severity,
            bridge_count_factor=count_factor,
            temporal_factor=temporal_factor,
            proximity_factor=proximity,
            cascade_type=classify_cascade_type(propagation_delay),
        ))

    logger.info("Cascade detection: %d cascade(s) from %d valid event(s)", len(cascades), len(valid))
    return cascades


def cascade_insights(bridge_id: int, cascades: Sequence[CascadeEvent]) -> list[str]:
    """Human-readable notes on how a bridge takes part in cascades."""
    insights: list[str] = []
    triggered = [c for c in cascades if c.trigger_bridge_id == bridge_id]
    followed = [c for c in cascades if c.trigger_bridge_id != bridge_id and c.involves(bridge_id)]

    if triggered:
        influence = sum(c.severity for c in triggered) / len(triggered)
        if influence > 0.5:
            insights.append("High cascade influence bridge: frequently triggers other bridge openings")
        targets = Counter(
            p.bridge_name for c in triggered for p in c.participants if p.bridge_id != bridge_id
        )
        if targets:
            name, count = targets.most_common(1)[0]
            insights.append(f"Most frequently triggers {name} ({count} cascade events)")

    if followed:
        susceptibility = sum(c.severity for c in followed) / len(followed)
        if susceptibility > 0.5:
            insights.append("High cascade susceptibility: often opens in response to other bridges")
        name, count = Counter(c.trigger_bridge_name for c in followed).most_common(1)[0]
        insights.append(f"Most frequently triggered by {name} ({count} cascade events)")

    immediate = [c for c in triggered if c.cascade_type == CascadeTypeEnum.IMMEDIATE]
    if triggered and len(immediate) > len(triggered) / 2:
        insights.append("Tends to trigger immediate cascade responses (< 5 minutes)")

    return insights


def get_cascade_alerts(
    recent_events: Sequence[DrawbridgeEvent],
    cascades: Sequence[CascadeEvent],
    bridges: Sequence[DrawbridgeInfo],
    reference_time: datetime,
    config: dict | None = None,
) -> list[CascadeAlert]:
    """Warn about follower openings expected soon after a recent trigger.

    A completed opening within ``alert_lookback_minutes`` of the reference
    time, on a bridge that historically triggered cascades at least
    ``alert_min_severity`` strong, raises an alert for each follower whose
    usual delay lands within the next ``alert_horizon_minutes``.
    """
    cfg = config_section(config, "cascade")
    lookback = timedelta(minutes=float(cfg.get("alert_lookback_minutes", 30)))
    horizon_minutes = float(cfg.get("alert_horizon_minutes", 15))
    min_severity = float(cfg.get("alert_min_severity", 0.4))
    now = ensure_aware(reference_time)
    names = {b.entity_id: b.entity_name for b in bridges}

    triggers = [
        e for e in filter_valid_events(recent_events, config)
        if e.close_datetime is not None and timedelta(0) <= now - e.open_datetime < lookback
    ]

    best: dict[tuple[int, str], CascadeAlert] = {}
    for trigger in triggers:
        for cascade in cascades:
            if cascade.trigger_bridge_id != trigger.entity_id or cascade.severity < min_severity:
                continue
            for p in cascade.participants:
                if p.bridge_id == trigger.entity_id:
                    continue
                expected = trigger.open_datetime + timedelta(minutes=p.delay_minutes)
                until = (expected - now).total_seconds() / 60.0
                if not 0 < until < horizon_minutes:
                    continue
                key = (p.bridge_id, trigger.event_id)
                current = best.get(key)
                if current is not None and current.probability >= cascade.severity:
                    continue
                best[key] = CascadeAlert(
                    target_bridge_id=p.bridge_id,
                    target_bridge_name=names.get(p.bridge_id, p.bridge_name),
                    trigger_bridge_id=trigger.entity_id,
                    trigger_bridge_name=trigger.entity_name,
                    expected_time=expected,
                    minutes_until_expected=until,
                    probability=cascade.severity,
                    cascade_type=cascade.cascade_type,
                )

    return sorted(best.values(), key=lambda a: (a.expected_time, a.target_bridge_id))
