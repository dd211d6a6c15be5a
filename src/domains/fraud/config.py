"""Fraud detection configuration with sensible defaults."""

import os
from dataclasses import dataclass, field


@dataclass
class ScoringWeights:
    # (exclusive lower bound, points), checked top-down
    amount_bands: tuple[tuple[float, int], ...] = (
        (100_000.0, 40),
        (50_000.0, 30),
        (10_000.0, 20),
        (5_000.0, 10),
    )
    payment_method_weights: dict[str, int] = field(
        default_factory=lambda: {
            "DIGITAL_WALLET": 15,
            "BANK_TRANSFER": 10,
            "CREDIT_CARD": 5,
            "DEBIT_CARD": 5,
            "OTHER": 20,
        }
    )
    unknown_payment_method_weight: int = 10
    late_night_start_hour: int = 0
    late_night_end_hour: int = 6
    late_night_penalty: int = 15
    high_risk_countries: frozenset[str] = frozenset({"XX", "YY", "ZZ"})
    high_risk_country_penalty: int = 25


@dataclass
class StatusThresholds:
    fraud_min_score: int = 80
    suspicious_min_score: int = 50


@dataclass
class AlertThresholds:
    trigger_score: int = 70
    trigger_amount: float = 50_000.0
    critical_score: int = 90
    critical_amount: float = 100_000.0
    high_score: int = 80
    high_amount: float = 75_000.0


@dataclass
class FraudConfig:
    scoring: ScoringWeights = field(default_factory=ScoringWeights)
    status: StatusThresholds = field(default_factory=StatusThresholds)
    alerts: AlertThresholds = field(default_factory=AlertThresholds)

    @classmethod
    def from_env(cls) -> "FraudConfig":
        """Load config with env var overrides. Env vars use FRAUD_ prefix."""
        config = cls()

        # Scoring overrides
        if v := os.getenv("FRAUD_HIGH_RISK_COUNTRIES"):
            config.scoring.high_risk_countries = frozenset(
                c.strip().upper() for c in v.split(",") if c.strip()
            )
        if v := os.getenv("FRAUD_LATE_NIGHT_START_HOUR"):
            config.scoring.late_night_start_hour = int(v)
        if v := os.getenv("FRAUD_LATE_NIGHT_END_HOUR"):
            config.scoring.late_night_end_hour = int(v)

        # Status overrides
        if v := os.getenv("FRAUD_STATUS_FRAUD_MIN_SCORE"):
            config.status.fraud_min_score = int(v)
        if v := os.getenv("FRAUD_STATUS_SUSPICIOUS_MIN_SCORE"):
            config.status.suspicious_min_score = int(v)

        # Alert overrides
        if v := os.getenv("FRAUD_ALERT_TRIGGER_SCORE"):
            config.alerts.trigger_score = int(v)
        if v := os.getenv("FRAUD_ALERT_TRIGGER_AMOUNT"):
            config.alerts.trigger_amount = float(v)

        return config


# Module-level default instance
default_config = FraudConfig()
