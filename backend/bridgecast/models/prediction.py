"""Blended opening prediction consumed by UI and routing collaborators."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from bridgecast.models.base import PredictionSourceEnum


class PredictionFactors(BaseModel):
    """Contribution breakdown behind a Prediction's probability."""
    model_config = ConfigDict(frozen=True)

    baseline_probability: Optional[float] = None
    forecast_probability: Optional[float] = None
    cascade_adjustment: float = 0.0
    baseline_weight: float = 1.0
    forecast_weight: float = 0.0
    model: Optional[str] = None          # e.g. "ARIMA(2,1,1)" or "frequency"
    residual_rmse: Optional[float] = None  # minutes, fitted forecasts only


class Prediction(BaseModel):
    model_config = ConfigDict(frozen=True)

    bridge_id: int
    entity_name: str = ""
    probability: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    expected_duration_minutes: float = 0.0
    horizon_minutes: float = 60.0
    sample_count: int = 0
    source: PredictionSourceEnum = PredictionSourceEnum.BASELINE
    factors: PredictionFactors = Field(default_factory=PredictionFactors)
    reasoning: str = ""

    @property
    def probability_label(self) -> str:
        p = self.probability
        if p < 0.1:
            return "Very Low"
        if p < 0.3:
            return "Low"
        if p < 0.6:
            return "Moderate"
        if p < 0.8:
            return "High"
        return "Very High"

    @property
    def confidence_label(self) -> str:
        if self.confidence < 0.3:
            return "Low Confidence"
        if self.confidence < 0.7:
            return "Medium Confidence"
        return "High Confidence"
