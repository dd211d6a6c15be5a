"""Fraud detection domain."""

from .alerts import AlertLifecycle, build_alert_message, create_alert, severity_for, should_alert
from .classifier import classify_status, status_from_score
from .models import (
    Action,
    ActionType,
    AlertStatus,
    Condition,
    IngestSource,
    Operator,
    RuleDefinition,
    Severity,
    TransactionCreate,
    TransactionDraft,
    TransactionStatus,
)
from .pipeline import TransactionPipeline
from .risk_scorer import compute_risk_score
from .rules_engine import RulesEngine, evaluate_condition

__all__ = [
    "Action",
    "ActionType",
    "AlertLifecycle",
    "AlertStatus",
    "Condition",
    "IngestSource",
    "Operator",
    "RuleDefinition",
    "RulesEngine",
    "Severity",
    "TransactionCreate",
    "TransactionDraft",
    "TransactionPipeline",
    "TransactionStatus",
    "build_alert_message",
    "classify_status",
    "compute_risk_score",
    "create_alert",
    "evaluate_condition",
    "severity_for",
    "should_alert",
    "status_from_score",
]
