"""Short-horizon opening forecast per bridge.

For each bridge the ordered inter-opening intervals (minutes) are modelled
with a low-order ARIMA(p, d, q):

  1. Difference the series d times.
  2. Estimate coefficients with the Hannan-Rissanen procedure: a long AR fit
     supplies innovation estimates, then ordinary least squares on p lags of
     the differenced series plus q lagged innovations.
  3. Forecast one step ahead and integrate back to an interval.

The next opening is treated as normally distributed around the forecast
interval (sd = residual RMSE, floored). The probability of an opening within
the horizon is conditioned on the time already elapsed since the last one.

Short or degenerate series (too few events, zero variance, singular normal
equations) fall back to the raw opening frequency with reduced confidence.
Nothing here raises on bad data.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from bridgecast.models.base import PredictionSourceEnum
from bridgecast.models.drawbridge_event import DrawbridgeEvent, ensure_aware
from bridgecast.models.prediction import Prediction, PredictionFactors
from bridgecast.modules.normalize import filter_valid_events, group_by_bridge
from bridgecast.modules.prediction_config import config_section

logger = logging.getLogger(__name__)

_PIVOT_EPS = 1e-10
_VARIANCE_EPS = 1e-9


@dataclass(frozen=True)
class ArimaFit:
    """Fitted ARIMA coefficients and its one-step forecast."""
    order: tuple[int, int, int]
    intercept: float
    ar: tuple[float, ...]
    ma: tuple[float, ...]
    residual_rmse: float
    forecast: float  # next value, on the original (undifferenced) scale


# ── Linear algebra ───────────────────────────────────────────────────────────

def solve_linear_system(a: list[list[float]], b: list[float]) -> list[float]:
    """Gaussian elimination with partial pivoting.

    Raises ValueError when the system is singular or near-singular.
    """
    n = len(b)
    m = [row[:] + [b[i]] for i, row in enumerate(a)]
    # Pivot tolerance relative to the largest coefficient
    tol = _PIVOT_EPS * max([1.0] + [abs(v) for row in a for v in row])
    for col in range(n):
        pivot = max(range(col, n), key=lambda r: abs(m[r][col]))
        if abs(m[pivot][col]) < tol:
            raise ValueError("singular system")
        m[col], m[pivot] = m[pivot], m[col]
        for r in range(col + 1, n):
            factor = m[r][col] / m[col][col]
            if factor == 0.0:
                continue
            for c in range(col, n + 1):
                m[r][c] -= factor * m[col][c]

    x = [0.0] * n
    for r in range(n - 1, -1, -1):
        acc = m[r][n] - sum(m[r][c] * x[c] for c in range(r + 1, n))
        x[r] = acc / m[r][r]
    return x


def least_squares(rows: list[list[float]], targets: list[float]) -> list[float]:
    """OLS via the normal equations."""
    k = len(rows[0])
    xtx = [[sum(row[i] * row[j] for row in rows) for j in range(k)] for i in range(k)]
    xty = [sum(row[i] * y for row, y in zip(rows, targets)) for i in range(k)]
    return solve_linear_system(xtx, xty)


# ── ARIMA ────────────────────────────────────────────────────────────────────

def difference(series: Sequence[float], d: int = 1) -> list[float]:
    out = list(series)
    for _ in range(d):
        out = [b - a for a, b in zip(out, out[1:])]
    return out


def _has_variance(series: Sequence[float]) -> bool:
    return bool(series) and (max(series) - min(series)) > _VARIANCE_EPS


def fit_arima(series: Sequence[float], order: tuple[int, int, int] = (2, 1, 1)) -> ArimaFit | None:
    """Fit ARIMA(p, d, q) by Hannan-Rissanen and forecast one step.

    Returns None when the series is too short or numerically degenerate.
    """
    p, d, q = order
    if not _has_variance(series):
        return None

    levels = [list(series)]
    for _ in range(d):
        levels.append(difference(levels[-1], 1))
    w = levels[-1]
    m = len(w)
    if not _has_variance(w):
        return None

    try:
        # Stage 1: long AR for innovation estimates
        innovations = [0.0] * m
        long_k = 0
        if q > 0:
            long_k = max(p + q, 2)
            rows = [[1.0] + [w[t - i] for i in range(1, long_k + 1)] for t in range(long_k, m)]
            if len(rows) < long_k + 2:
                return None
            beta = least_squares(rows, w[long_k:])
            for t in range(long_k, m):
                fitted = beta[0] + sum(beta[i] * w[t - i] for i in range(1, long_k + 1))
                innovations[t] = w[t] - fitted

        # Stage 2: regress on p lags and q lagged innovations
        start = max(p, long_k + q)
        n_params = 1 + p + q
        rows = [
            [1.0]
            + [w[t - i] for i in range(1, p + 1)]
            + [innovations[t - j] for j in range(1, q + 1)]
            for t in range(start, m)
        ]
        if len(rows) < n_params + 1:
            return None
        beta = least_squares(rows, w[start:])

        residuals = []
        for row, target in zip(rows, w[start:]):
            residuals.append(target - sum(b * x for b, x in zip(beta, row)))
        rmse = math.sqrt(sum(r * r for r in residuals) / len(residuals))

        # Final innovations come from the stage-2 fit where available
        eps = innovations[:]
        for offset, r in enumerate(residuals):
            eps[start + offset] = r

        intercept, ar, ma = beta[0], beta[1:1 + p], beta[1 + p:]
        nxt = intercept
        nxt += sum(ar[i - 1] * w[m - i] for i in range(1, p + 1))
        nxt += sum(ma[j - 1] * eps[m - j] for j in range(1, q + 1))

        # Integrate back through each differencing level
        for level in range(d - 1, -1, -1):
            nxt = levels[level][-1] + nxt

        if not (math.isfinite(nxt) and math.isfinite(rmse)):
            return None
    except (ZeroDivisionError, ValueError, OverflowError) as exc:
        logger.debug("ARIMA%s fit failed: %s", order, exc)
        return None

    return ArimaFit(
        order=(p, d, q),
        intercept=intercept,
        ar=tuple(ar),
        ma=tuple(ma),
        residual_rmse=rmse,
        forecast=nxt,
    )


# ── Probability model ────────────────────────────────────────────────────────

def _normal_cdf(x: float) -> float:
    return 0.5 * (1.0 + math.erf(x / math.sqrt(2.0)))


def frequency_probability(mean_interval: float, horizon_minutes: float) -> float:
    """Poisson chance of at least one opening within the horizon."""
    if mean_interval <= 0:
        return 1.0
    return 1.0 - math.exp(-horizon_minutes / mean_interval)


def conditional_opening_probability(
    expected_interval: float,
    sd: float,
    elapsed_minutes: float,
    horizon_minutes: float,
) -> float | None:
    """P(next opening within horizon | none since the last one, elapsed ago).

    Returns None when the bridge is so overdue that the survival mass has
    vanished and the normal model no longer says anything useful.
    """
    survival = 1.0 - _normal_cdf((elapsed_minutes - expected_interval) / sd)
    if survival < 1e-9:
        return None
    reached = _normal_cdf((elapsed_minutes + horizon_minutes - expected_interval) / sd)
    lapsed = 1.0 - survival
    return max(0.0, min(1.0, (reached - lapsed) / survival))


def _intervals_minutes(events: Sequence[DrawbridgeEvent]) -> list[float]:
    return [
        (b.open_datetime - a.open_datetime).total_seconds() / 60.0
        for a, b in zip(events, events[1:])
    ]


def _model_name(order: tuple[int, int, int]) -> str:
    return f"ARIMA({order[0]},{order[1]},{order[2]})"


def forecast_bridge(
    events: Sequence[DrawbridgeEvent],
    reference_time: datetime,
    config: dict | None = None,
) -> Prediction | None:
    """Forecast one bridge from its own valid events (sorted by open time).

    Source is FORECAST when the ARIMA fit succeeded and NEUTRAL when the
    frequency fallback was used.
    """
    cfg = config_section(config, "forecast")
    reference_time = ensure_aware(reference_time)
    history = [e for e in events if e.open_datetime <= reference_time]
    if not history:
        return None

    order = tuple(int(x) for x in cfg.get("order", (2, 1, 1)))
    min_samples = int(cfg.get("min_samples", 5))
    horizon = float(cfg.get("horizon_minutes", 60))
    half = float(cfg.get("sample_half_saturation", 5))
    sd_floor = float(cfg.get("min_residual_sd_minutes", 5.0))

    n = len(history)
    sample_factor = n / (n + half)
    first = history[0]
    durations = [e.minutes_open for e in history]
    mean_duration = sum(durations) / n
    intervals = _intervals_minutes(history)
    elapsed = max(0.0, (reference_time - history[-1].open_datetime).total_seconds() / 60.0)

    fit = fit_arima(intervals, order) if n >= min_samples else None
    probability = None
    if fit is not None:
        expected_interval = max(fit.forecast, 1.0)
        sd = max(fit.residual_rmse, sd_floor)
        try:
            probability = conditional_opening_probability(expected_interval, sd, elapsed, horizon)
        except (ZeroDivisionError, ValueError, OverflowError) as exc:
            logger.debug("Bridge %s: probability model failed: %s", first.entity_id, exc)

    if fit is None or probability is None:
        if intervals:
            mean_interval = sum(intervals) / len(intervals)
            probability = frequency_probability(mean_interval, horizon)
            reasoning = f"{n} opening(s); frequency estimate, mean interval {mean_interval:.0f} min"
        else:
            probability = float(cfg.get("neutral_probability", 0.1))
            reasoning = "Single opening on record; neutral estimate"
        logger.debug("Bridge %s: forecast fallback (%d events)", first.entity_id, n)
        return Prediction(
            bridge_id=first.entity_id,
            entity_name=first.entity_name,
            probability=max(0.0, min(1.0, probability)),
            confidence=max(0.0, min(1.0, sample_factor * float(cfg.get("fallback_confidence_scale", 0.5)))),
            expected_duration_minutes=mean_duration,
            horizon_minutes=horizon,
            sample_count=n,
            source=PredictionSourceEnum.NEUTRAL,
            factors=PredictionFactors(forecast_probability=probability, model="frequency"),
            reasoning=reasoning,
        )

    duration_fit = fit_arima(durations, order) if n >= min_samples else None
    expected_duration = max(0.0, duration_fit.forecast) if duration_fit is not None else mean_duration
    fit_quality = 1.0 / (1.0 + fit.residual_rmse / max(fit.forecast, 1.0))
    return Prediction(
        bridge_id=first.entity_id,
        entity_name=first.entity_name,
        probability=probability,
        confidence=max(0.0, min(1.0, sample_factor * fit_quality)),
        expected_duration_minutes=expected_duration,
        horizon_minutes=horizon,
        sample_count=n,
        source=PredictionSourceEnum.FORECAST,
        factors=PredictionFactors(
            forecast_probability=probability,
            forecast_weight=1.0,
            baseline_weight=0.0,
            model=_model_name(fit.order),
            residual_rmse=fit.residual_rmse,
        ),
        reasoning=(
            f"{_model_name(fit.order)} expects next opening {fit.forecast:.0f} min "
            f"after the last; {elapsed:.0f} min elapsed"
        ),
    )


def generate_predictions(
    events: Sequence[DrawbridgeEvent],
    config: dict | None = None,
    reference_time: datetime | None = None,
) -> list[Prediction]:
    """One forecast Prediction per bridge with valid events, sorted by entity id."""
    valid = filter_valid_events(events, config)
    if not valid:
        return []

    ref = ensure_aware(reference_time) if reference_time else max(e.open_datetime for e in valid)
    groups = group_by_bridge(valid)
    predictions: list[Prediction] = []
    for entity_id in sorted(groups):
        prediction = forecast_bridge(groups[entity_id], ref, config)
        if prediction is not None:
            predictions.append(prediction)
    fitted = sum(1 for p in predictions if p.source == PredictionSourceEnum.FORECAST)
    logger.debug("Forecast: %d bridge(s), %d fitted, %d fallback", len(predictions), fitted, len(predictions) - fitted)
    return predictions
