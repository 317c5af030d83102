"""Prediction tunables loader.

Reads ``config/prediction.yaml`` once and caches it. Every consumer reads its
section with ``.get(key, default)`` so a missing file or section degrades to
the built-in defaults instead of failing. Callers may pass an explicit
``config`` dict to any public function to bypass the file entirely.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from bridgecast.config import settings

logger = logging.getLogger(__name__)

_PREDICTION_CONFIG: dict[str, Any] | None = None

_EXPECTED_SECTIONS = ["analytics", "cascade", "forecast", "blending", "seasonal", "streak", "risk"]

# Keys whose values are weights or probabilities and must stay in [0, 1]
_UNIT_INTERVAL_KEYS = {
    "analytics": ["sample_weight", "variability_weight"],
    "cascade": [
        "min_severity", "bridge_count_weight", "temporal_weight", "proximity_weight",
        "alert_min_severity",
    ],
    "forecast": ["neutral_probability", "fallback_confidence_scale"],
    "blending": [
        "max_forecast_weight", "fallback_forecast_scale", "cascade_boost_weight",
        "trigger_role_scale", "max_cascade_adjustment",
    ],
    "seasonal": ["weekend_adjustment", "summer_adjustment", "holiday_adjustment", "quiet_rush_hour_probability"],
    "streak": ["record_ratio"],
    "risk": ["medium_probability", "high_probability", "congestion_probability_threshold"],
}


def _resolve_config_path() -> Path:
    config_path = Path(settings.PREDICTION_CONFIG)
    if config_path.is_absolute() or config_path.exists():
        return config_path
    # Fall back to the repository root when run from another working directory
    return Path(__file__).resolve().parents[3] / config_path


def load_prediction_config() -> dict[str, Any]:
    global _PREDICTION_CONFIG
    if _PREDICTION_CONFIG is None:
        config_path = _resolve_config_path()
        if not config_path.exists():
            logger.warning("prediction.yaml not found at %s, using built-in defaults", config_path)
            _PREDICTION_CONFIG = {}
        else:
            with open(config_path) as f:
                _PREDICTION_CONFIG = yaml.safe_load(f) or {}
        missing = [s for s in _EXPECTED_SECTIONS if s not in _PREDICTION_CONFIG]
        if missing:
            logger.warning("prediction.yaml missing sections: %s", ", ".join(missing))
        for section_name, keys in _UNIT_INTERVAL_KEYS.items():
            section = _PREDICTION_CONFIG.get(section_name, {})
            if not isinstance(section, dict):
                continue
            for key in keys:
                val = section.get(key)
                if isinstance(val, (int, float)) and not (0 <= val <= 1):
                    logger.warning("prediction.yaml %s.%s=%s outside [0,1]", section_name, key, val)
    return _PREDICTION_CONFIG


def reload_prediction_config() -> dict[str, Any]:
    """Force-reload prediction config from disk (e.g. after YAML edits)."""
    global _PREDICTION_CONFIG
    _PREDICTION_CONFIG = None
    return load_prediction_config()


def config_section(config: dict[str, Any] | None, name: str) -> dict[str, Any]:
    """Return one section of *config* (or of the cached file config)."""
    cfg = load_prediction_config() if config is None else config
    section = cfg.get(name, {})
    return section if isinstance(section, dict) else {}
