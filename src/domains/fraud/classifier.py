"""Tri-state status resolution for newly created transactions."""

from .config import FraudConfig, default_config
from .models import TransactionStatus


def status_from_score(score: int, config: FraudConfig | None = None) -> TransactionStatus:
    cfg = config or default_config
    if score >= cfg.status.fraud_min_score:
        return TransactionStatus.FRAUD
    if score >= cfg.status.suspicious_min_score:
        return TransactionStatus.SUSPICIOUS
    return TransactionStatus.SAFE


def classify_status(
    score: int,
    forced_status: TransactionStatus | None = None,
    requested_status: TransactionStatus | None = None,
    config: FraudConfig | None = None,
) -> TransactionStatus:
    """Resolve the status a new transaction is persisted with.

    A status forced by a rule action wins. Otherwise a caller-supplied status
    is honoured unless it is the SAFE placeholder, in which case the status is
    derived from the score.
    """
    if forced_status is not None:
        return forced_status
    if requested_status is not None and requested_status != TransactionStatus.SAFE:
        return requested_status
    return status_from_score(score, config)
