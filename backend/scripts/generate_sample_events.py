"""Generate a synthetic Seattle drawbridge-opening CSV and run the pipeline on it.

Bridges and scenarios:
  Ballard (2) -> Fremont (3): Ballard opens first, Fremont follows within
    ~10 min on most afternoons (short-term cascades)
  University (4) -> Montlake (5): paired openings a few minutes apart
    (immediate cascades)
  Spokane St (6): irregular openings, no partner bridge
  South Park (21): only two openings (frequency fallback in the forecaster)
  Plus a handful of corrupt rows (negative duration, blank name, 1900 date)
  that the pipeline must drop.

Usage:
    python scripts/generate_sample_events.py
    # Outputs: backend/scripts/sample_events.csv
"""
from __future__ import annotations

import csv
import logging
import random
from datetime import datetime, timedelta
from pathlib import Path

from bridgecast.config import settings
from bridgecast.models.base import TrafficLevelEnum
from bridgecast.models.drawbridge_info import DrawbridgeInfo
from bridgecast.models.route_risk import RoutePoint
from bridgecast.modules.analytics_aggregator import calculate_analytics, generate_insights
from bridgecast.modules.cascade_detector import detect_cascade_effects
from bridgecast.modules.normalize import load_events_csv
from bridgecast.modules.prediction_aggregator import get_arima_enhanced_prediction
from bridgecast.modules.risk_scoring import assess_route_risk
from bridgecast.modules.seasonal_patterns import decompose
from bridgecast.modules.streak_analytics import calculate_weekly_champion

random.seed(42)

logger = logging.getLogger(__name__)

OUTPUT_PATH = Path(__file__).parent / "sample_events.csv"

# Seattle open-data feed column names
FIELDNAMES = [
    "entitytype", "entityname", "entityid", "opendatetime",
    "closedatetime", "minutesopen", "latitude", "longitude",
]

BRIDGES = {
    2: ("Ballard Bridge", 47.65918, -122.37652),
    3: ("Fremont Bridge", 47.64763, -122.34970),
    4: ("University Bridge", 47.65288, -122.32007),
    5: ("Montlake Bridge", 47.64732, -122.30440),
    6: ("Spokane St Bridge", 47.57133, -122.34956),
    21: ("South Park Bridge", 47.52897, -122.31329),
}

BASE_DATE = datetime.now().replace(hour=0, minute=0, second=0, microsecond=0) - timedelta(days=7)


def ts(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%dT%H:%M:%S")


def make_row(entity_id: int, opened: datetime, minutes: float, name: str | None = None) -> dict:
    bridge_name, lat, lon = BRIDGES[entity_id]
    closed = opened + timedelta(minutes=minutes)
    return {
        "entitytype": "Bridge",
        "entityname": bridge_name if name is None else name,
        "entityid": entity_id,
        "opendatetime": ts(opened),
        "closedatetime": ts(closed),
        "minutesopen": round(minutes, 1),
        "latitude": lat,
        "longitude": lon,
    }


rows = []

# ─── Ballard -> Fremont: afternoon pairs ────────────────────────────────────
for day in range(7):
    for hour in (13, 15, 17):
        opened = BASE_DATE + timedelta(days=day, hours=hour, minutes=random.randint(0, 20))
        rows.append(make_row(2, opened, random.uniform(6, 12)))
        if random.random() < 0.8:
            follow = opened + timedelta(minutes=random.uniform(6, 12))
            rows.append(make_row(3, follow, random.uniform(5, 9)))

# ─── University -> Montlake: near-simultaneous ─────────────────────────────
for day in range(7):
    for hour in (10, 19):
        opened = BASE_DATE + timedelta(days=day, hours=hour, minutes=random.randint(0, 30))
        rows.append(make_row(4, opened, random.uniform(4, 8)))
        rows.append(make_row(5, opened + timedelta(minutes=random.uniform(1, 4)), random.uniform(4, 8)))

# ─── Spokane St: irregular solo openings ───────────────────────────────────
t = BASE_DATE
while t < BASE_DATE + timedelta(days=7):
    t += timedelta(minutes=random.uniform(180, 600))
    rows.append(make_row(6, t, random.uniform(3, 15)))

# ─── South Park: sparse history ────────────────────────────────────────────
rows.append(make_row(21, BASE_DATE + timedelta(days=2, hours=9), 12.0))
rows.append(make_row(21, BASE_DATE + timedelta(days=5, hours=16), 9.5))

# ─── Corrupt rows ──────────────────────────────────────────────────────────
rows.append(make_row(6, BASE_DATE + timedelta(days=1), -1.0))
rows.append(make_row(3, BASE_DATE + timedelta(days=3), 5.0, name=""))
rows.append(make_row(2, datetime(1900, 1, 1), 7.0))

rows.sort(key=lambda r: r["opendatetime"])


def main() -> None:
    logging.basicConfig(level=settings.LOG_LEVEL)
    with open(OUTPUT_PATH, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=FIELDNAMES)
        writer.writeheader()
        writer.writerows(rows)
    logger.info("Wrote %d rows to %s", len(rows), OUTPUT_PATH)

    events = load_events_csv(OUTPUT_PATH)
    analytics = calculate_analytics(events)
    cascades = detect_cascade_effects(events)
    infos = [
        DrawbridgeInfo(entity_id=eid, entity_name=name, latitude=lat, longitude=lon)
        for eid, (name, lat, lon) in BRIDGES.items()
    ]
    predictions = []
    for info in infos:
        prediction = get_arima_enhanced_prediction(info, events, analytics, cascades)
        if prediction is None:
            continue
        predictions.append(prediction)
        logger.info(
            "%-18s p=%.2f conf=%.2f (%s)",
            info.entity_name, prediction.probability, prediction.confidence, prediction.reasoning,
        )

    # Ballard -> Fremont along the ship canal
    route = [RoutePoint(latitude=47.6600, longitude=-122.3800), RoutePoint(latitude=47.6470, longitude=-122.3450)]
    assessment = assess_route_risk(route, infos, predictions, TrafficLevelEnum.MODERATE)
    logger.info(
        "Route risk: %s, %d congestion point(s), %d cascade(s) detected",
        assessment.level.value, len(assessment.congestion_points), len(cascades),
    )

    slots = decompose(events)
    for info in infos:
        for insight in generate_insights(info.entity_id, slots):
            logger.info("%-18s %s", info.entity_name, insight)
    champion = calculate_weekly_champion(events)
    if champion is not None:
        logger.info(
            "Longest closed streak: %s, %.1f h (%s)",
            champion.bridge_name, champion.streak_hours, champion.historical_context,
        )


if __name__ == "__main__":
    main()
