"""Route risk scoring for the trip-planning collaborator.

Maps an opening Prediction plus the live traffic level onto a discrete
RouteRiskLevelEnum using a band x traffic matrix from
``config/prediction.yaml`` (``risk.matrix``). The matrix is monotone in both
axes: a likelier opening or heavier traffic never lowers the level.

Missing inputs never guess: no prediction, no traffic signal, or an
``unknown`` traffic level all score as UNKNOWN.
"""
from __future__ import annotations

import logging
from typing import Sequence

from bridgecast.models.base import RouteRiskLevelEnum, TrafficLevelEnum
from bridgecast.models.drawbridge_info import DrawbridgeInfo
from bridgecast.models.prediction import Prediction
from bridgecast.models.route_risk import CongestionPoint, RoutePoint, RouteRiskAssessment
from bridgecast.modules.prediction_config import config_section
from bridgecast.utils.geo import distance_to_polyline_meters, is_valid_coordinate

logger = logging.getLogger(__name__)

_DEFAULT_MATRIX: dict[str, dict[str, str]] = {
    "low": {"free_flow": "low", "normal": "low", "moderate": "medium", "heavy": "medium"},
    "medium": {"free_flow": "low", "normal": "medium", "moderate": "medium", "heavy": "high"},
    "high": {"free_flow": "medium", "normal": "high", "moderate": "high", "heavy": "high"},
}

_LEVEL_ORDER = [RouteRiskLevelEnum.LOW, RouteRiskLevelEnum.MEDIUM, RouteRiskLevelEnum.HIGH]


def probability_band(probability: float, config: dict | None = None) -> str:
    """Return 'low', 'medium' or 'high' for an opening probability."""
    cfg = config_section(config, "risk")
    if probability >= float(cfg.get("high_probability", 0.6)):
        return "high"
    if probability >= float(cfg.get("medium_probability", 0.3)):
        return "medium"
    return "low"


def _matrix_level(band: str, traffic: TrafficLevelEnum, config: dict | None) -> RouteRiskLevelEnum:
    matrix = config_section(config, "risk").get("matrix") or _DEFAULT_MATRIX
    row = matrix.get(band) or _DEFAULT_MATRIX[band]
    value = row.get(traffic.value, _DEFAULT_MATRIX[band][traffic.value])
    try:
        return RouteRiskLevelEnum(value)
    except ValueError:
        logger.warning("risk.matrix %s.%s=%r is not a risk level", band, traffic.value, value)
        return RouteRiskLevelEnum(_DEFAULT_MATRIX[band][traffic.value])


def risk_for_probability(
    probability: float,
    traffic_level: TrafficLevelEnum | None,
    config: dict | None = None,
) -> RouteRiskLevelEnum:
    if traffic_level is None or traffic_level == TrafficLevelEnum.UNKNOWN:
        return RouteRiskLevelEnum.UNKNOWN
    return _matrix_level(probability_band(probability, config), traffic_level, config)


def route_risk_level(
    prediction: Prediction | None,
    traffic_level: TrafficLevelEnum | None,
    config: dict | None = None,
) -> RouteRiskLevelEnum:
    """Risk level for one bridge prediction under the current traffic."""
    if prediction is None:
        return RouteRiskLevelEnum.UNKNOWN
    return risk_for_probability(prediction.probability, traffic_level, config)


def _bridges_near_route(
    route: Sequence[RoutePoint],
    bridges: Sequence[DrawbridgeInfo],
    buffer_m: float,
) -> list[tuple[DrawbridgeInfo, float]]:
    polyline = [(p.latitude, p.longitude) for p in route if is_valid_coordinate(p.latitude, p.longitude)]
    near: list[tuple[DrawbridgeInfo, float]] = []
    for bridge in bridges:
        if not bridge.has_coordinates:
            continue
        distance = distance_to_polyline_meters(bridge.latitude, bridge.longitude, polyline)
        if distance is not None and distance <= buffer_m:
            near.append((bridge, distance))
    return near


def _describe(bridge: DrawbridgeInfo, prediction: Prediction, distance_m: float) -> str:
    return (
        f"{bridge.entity_name}: {prediction.probability_label.lower()} chance of opening "
        f"({prediction.probability:.0%}) within {prediction.horizon_minutes:.0f} min, "
        f"{distance_m:.0f} m from route"
    )


def find_congestion_points(
    route: Sequence[RoutePoint],
    bridges: Sequence[DrawbridgeInfo],
    predictions: Sequence[Prediction],
    traffic_level: TrafficLevelEnum | None,
    config: dict | None = None,
) -> list[CongestionPoint]:
    """Bridges along the route whose opening probability meets the threshold."""
    cfg = config_section(config, "risk")
    buffer_m = float(cfg.get("route_buffer_m", 150))
    threshold = float(cfg.get("congestion_probability_threshold", 0.5))
    by_bridge = {p.bridge_id: p for p in predictions}
    traffic = traffic_level or TrafficLevelEnum.UNKNOWN

    points: list[CongestionPoint] = []
    for bridge, distance in _bridges_near_route(route, bridges, buffer_m):
        prediction = by_bridge.get(bridge.entity_id)
        if prediction is None or prediction.probability < threshold:
            continue
        points.append(CongestionPoint(
            description=_describe(bridge, prediction, distance),
            traffic_level=traffic,
            bridge_id=bridge.entity_id,
            latitude=bridge.latitude,
            longitude=bridge.longitude,
            probability=prediction.probability,
            distance_from_route_m=distance,
        ))
    points.sort(key=lambda p: (-(p.probability or 0.0), p.bridge_id))
    return points


def assess_route_risk(
    route: Sequence[RoutePoint],
    bridges: Sequence[DrawbridgeInfo],
    predictions: Sequence[Prediction],
    traffic_level: TrafficLevelEnum | None,
    config: dict | None = None,
) -> RouteRiskAssessment:
    """Overall risk for a route: the worst level over the bridges it passes.

    A route that crosses no bridge is scored as a zero opening probability.
    A route that crosses bridges none of which has a prediction is UNKNOWN.
    """
    cfg = config_section(config, "risk")
    traffic = traffic_level or TrafficLevelEnum.UNKNOWN
    near = _bridges_near_route(route, bridges, float(cfg.get("route_buffer_m", 150)))
    by_bridge = {p.bridge_id: p for p in predictions}
    on_route = tuple(b.entity_id for b, _ in near)
    congestion = tuple(find_congestion_points(route, bridges, predictions, traffic_level, config))

    if not near:
        level = risk_for_probability(0.0, traffic_level, config)
        return RouteRiskAssessment(
            level=level, traffic_level=traffic, congestion_points=congestion,
            bridges_on_route=on_route, max_probability=0.0,
        )

    predicted = [by_bridge[b] for b in on_route if b in by_bridge]
    if not predicted:
        return RouteRiskAssessment(
            level=RouteRiskLevelEnum.UNKNOWN, traffic_level=traffic,
            congestion_points=congestion, bridges_on_route=on_route,
        )

    levels = [route_risk_level(p, traffic_level, config) for p in predicted]
    if RouteRiskLevelEnum.UNKNOWN in levels:
        level = RouteRiskLevelEnum.UNKNOWN
    else:
        level = max(levels, key=_LEVEL_ORDER.index)
    return RouteRiskAssessment(
        level=level,
        traffic_level=traffic,
        congestion_points=congestion,
        bridges_on_route=on_route,
        max_probability=max(p.probability for p in predicted),
    )
