"""Re-export value records so callers can import them from one place."""
from bridgecast.models.base import (
    CascadeTypeEnum,
    PredictionSourceEnum,
    RouteRiskLevelEnum,
    TrafficLevelEnum,
    TrendDirectionEnum,
)
from bridgecast.models.drawbridge_event import DrawbridgeEvent
from bridgecast.models.drawbridge_info import DrawbridgeInfo
from bridgecast.models.prediction import Prediction, PredictionFactors
from bridgecast.models.bridge_analytics import BridgeAnalytics
from bridgecast.models.cascade_event import CascadeAlert, CascadeEvent, CascadeParticipant
from bridgecast.models.route_risk import CongestionPoint, RoutePoint, RouteRiskAssessment
from bridgecast.models.trend import DailyTrendPoint, TrendSummary
from bridgecast.models.seasonal import SeasonalSlot
from bridgecast.models.streak import StreakData, StreakPattern, WeeklyChampion
