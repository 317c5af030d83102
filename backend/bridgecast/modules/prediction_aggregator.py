"""Merge baseline analytics, forecast and cascade signal into one Prediction.

  probability = (1 - w_f) * baseline + w_f * forecast + cascade_boost

where ``w_f = max_forecast_weight * n / (n + blend_half_saturation)`` grows
with the bridge's sample count and is scaled down when the forecaster fell
back to raw frequency. The cascade boost comes from recent cascades that
involve the bridge and is capped so the result never leaves [0, 1].

All functions are read-only over their inputs and safe to call concurrently.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Sequence

from bridgecast.models.base import PredictionSourceEnum
from bridgecast.models.bridge_analytics import BridgeAnalytics
from bridgecast.models.cascade_event import CascadeEvent
from bridgecast.models.drawbridge_event import DrawbridgeEvent, ensure_aware
from bridgecast.models.drawbridge_info import DrawbridgeInfo
from bridgecast.models.prediction import Prediction, PredictionFactors
from bridgecast.modules.analytics_aggregator import calculate_analytics, find_analytics
from bridgecast.modules.forecast_predictor import forecast_bridge
from bridgecast.modules.normalize import filter_valid_events
from bridgecast.modules.prediction_config import config_section

logger = logging.getLogger(__name__)


def forecast_weight(sample_count: int, fell_back: bool, config: dict | None = None) -> float:
    cfg = config_section(config, "blending")
    max_weight = float(cfg.get("max_forecast_weight", 0.7))
    half = float(cfg.get("blend_half_saturation", 10))
    if sample_count <= 0:
        return 0.0
    weight = max_weight * sample_count / (sample_count + half)
    if fell_back:
        weight *= float(cfg.get("fallback_forecast_scale", 0.5))
    return max(0.0, min(1.0, weight))


def cascade_adjustment(
    bridge_id: int,
    cascades: Sequence[CascadeEvent],
    reference_time: datetime,
    config: dict | None = None,
) -> float:
    """Uncapped boost from the strongest recent cascade involving the bridge."""
    cfg = config_section(config, "blending")
    lookback = timedelta(minutes=float(cfg.get("cascade_lookback_minutes", 60)))
    boost_weight = float(cfg.get("cascade_boost_weight", 0.3))
    trigger_scale = float(cfg.get("trigger_role_scale", 0.5))

    boost = 0.0
    for cascade in cascades:
        if not cascade.involves(bridge_id):
            continue
        if cascade.window_start > reference_time or reference_time - cascade.window_end > lookback:
            continue
        candidate = boost_weight * cascade.severity
        if cascade.trigger_bridge_id == bridge_id:
            # The trigger already opened; followers carry more of the signal
            candidate *= trigger_scale
        boost = max(boost, candidate)
    return boost


def _default_reference_time(
    valid_events: Sequence[DrawbridgeEvent],
    entry: BridgeAnalytics | None,
) -> datetime:
    if valid_events:
        return max(e.open_datetime for e in valid_events)
    return entry.window_end


def get_arima_enhanced_prediction(
    bridge: DrawbridgeInfo,
    events: Sequence[DrawbridgeEvent],
    analytics: Sequence[BridgeAnalytics],
    cascade_events: Sequence[CascadeEvent],
    config: dict | None = None,
    reference_time: datetime | None = None,
) -> Prediction | None:
    """Blended prediction for one bridge.

    Returns None only when the bridge has neither an analytics entry nor any
    valid event; that is "cannot predict", not an error.
    """
    cfg = config_section(config, "blending")
    valid = filter_valid_events(events, config)
    bridge_events = sorted(
        (e for e in valid if e.entity_id == bridge.entity_id),
        key=lambda e: e.open_datetime,
    )
    entry = find_analytics(bridge.entity_id, analytics)
    if entry is None and not bridge_events:
        logger.debug("Bridge %s: no analytics and no events, cannot predict", bridge.entity_id)
        return None

    ref = ensure_aware(reference_time) if reference_time else _default_reference_time(valid, entry)
    if entry is None:
        computed = calculate_analytics(bridge_events, config, ref)
        entry = computed[0] if computed else None
        if entry is None:
            return None

    baseline = entry.baseline_probability
    forecast = forecast_bridge(bridge_events, ref, config) if bridge_events else None

    if forecast is not None:
        fell_back = forecast.source == PredictionSourceEnum.NEUTRAL
        w_f = forecast_weight(forecast.sample_count, fell_back, config)
        blended = (1.0 - w_f) * baseline + w_f * forecast.probability
        confidence = (1.0 - w_f) * entry.confidence + w_f * forecast.confidence
        expected_duration = forecast.expected_duration_minutes
        horizon = forecast.horizon_minutes
        model = forecast.factors.model
        rmse = forecast.factors.residual_rmse
        forecast_p = forecast.probability
    else:
        w_f = 0.0
        blended = baseline
        confidence = entry.confidence
        expected_duration = entry.mean_minutes_open
        horizon = float(config_section(config, "forecast").get("horizon_minutes", 60))
        model = None
        rmse = None
        forecast_p = None

    blended = max(0.0, min(1.0, blended))
    boost = cascade_adjustment(bridge.entity_id, cascade_events, ref, config)
    max_adjustment = float(cfg.get("max_cascade_adjustment", 0.3))
    boost = max(0.0, min(boost, max_adjustment, 1.0 - blended))
    probability = max(0.0, min(1.0, blended + boost))

    reasoning = [f"baseline {baseline:.0%} (weight {1.0 - w_f:.2f})"]
    if forecast_p is not None:
        reasoning.append(f"{model or 'forecast'} {forecast_p:.0%} (weight {w_f:.2f})")
    if boost > 0:
        reasoning.append(f"cascade +{boost:.0%}")

    return Prediction(
        bridge_id=bridge.entity_id,
        entity_name=bridge.entity_name,
        probability=probability,
        confidence=max(0.0, min(1.0, confidence)),
        expected_duration_minutes=expected_duration,
        horizon_minutes=horizon,
        sample_count=entry.opening_count,
        source=PredictionSourceEnum.BLENDED if w_f > 0 else PredictionSourceEnum.BASELINE,
        factors=PredictionFactors(
            baseline_probability=baseline,
            forecast_probability=forecast_p,
            cascade_adjustment=boost,
            baseline_weight=1.0 - w_f,
            forecast_weight=w_f,
            model=model,
            residual_rmse=rmse,
        ),
        reasoning="; ".join(reasoning),
    )
