"""Additive heuristic risk score for transactions that arrive unscored."""

from datetime import UTC, datetime

from .config import FraudConfig, default_config
from .models import Location, PaymentMethod


def _amount_points(amount: float, config: FraudConfig) -> int:
    for lower_bound, points in config.scoring.amount_bands:
        if amount > lower_bound:
            return points
    return 0


def _payment_method_points(payment_method: PaymentMethod | str | None, config: FraudConfig) -> int:
    weights = config.scoring.payment_method_weights
    key = payment_method.value if isinstance(payment_method, PaymentMethod) else payment_method
    return weights.get(key, config.scoring.unknown_payment_method_weight)


def _is_late_night(timestamp: datetime, config: FraudConfig) -> bool:
    start = config.scoring.late_night_start_hour
    end = config.scoring.late_night_end_hour
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(UTC)
    hour = timestamp.hour
    if start <= end:
        return start <= hour < end
    # Window wraps midnight, e.g. 22 -> 4
    return hour >= start or hour < end


def clamp_score(score: float) -> int:
    return int(max(0, min(100, round(score))))


def compute_risk_score(
    amount: float,
    payment_method: PaymentMethod | str | None,
    location: Location | None,
    timestamp: datetime,
    config: FraudConfig | None = None,
) -> int:
    """Score a transaction on a 0-100 scale.

    Sums an amount band weight, a payment-method weight, a late-night penalty
    and a high-risk-country penalty, then clamps. Deterministic for identical
    input.
    """
    cfg = config or default_config

    score = _amount_points(amount, cfg)
    score += _payment_method_points(payment_method, cfg)

    if location is not None and location.country:
        if location.country.upper() in cfg.scoring.high_risk_countries:
            score += cfg.scoring.high_risk_country_penalty

    if _is_late_night(timestamp, cfg):
        score += cfg.scoring.late_night_penalty

    return clamp_score(score)
