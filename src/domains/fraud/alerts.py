"""Fraud alerts: threshold-based creation and the review lifecycle."""

import uuid
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import Alert as AlertDB
from src.db.models import Transaction as TransactionDB
from src.shared.errors import InvalidTransitionError, NotFoundError

from .config import FraudConfig, default_config
from .models import AlertStatus, Severity

logger = structlog.get_logger()

ALERT_CACHE_PATTERNS = ("/api/v1/alerts*",)

_HEADLINES = {
    Severity.CRITICAL: "High-risk transaction detected",
    Severity.HIGH: "Suspicious transaction detected",
    Severity.MEDIUM: "Transaction requires review",
}


def should_alert(risk_score: int, amount: float, config: FraudConfig | None = None) -> bool:
    cfg = config or default_config
    return risk_score > cfg.alerts.trigger_score or amount > cfg.alerts.trigger_amount


def severity_for(risk_score: int, amount: float, config: FraudConfig | None = None) -> Severity:
    """Most severe matching band wins."""
    cfg = config or default_config
    if risk_score >= cfg.alerts.critical_score or amount > cfg.alerts.critical_amount:
        return Severity.CRITICAL
    if risk_score >= cfg.alerts.high_score or amount > cfg.alerts.high_amount:
        return Severity.HIGH
    return Severity.MEDIUM


def _format_amount(amount: float) -> str:
    if float(amount).is_integer():
        return str(int(amount))
    return f"{amount:.2f}"


def build_alert_message(severity: Severity, risk_score: int, amount: float) -> str:
    return (
        f"{severity.value}: {_HEADLINES[severity]} "
        f"(Risk: {risk_score}, Amount: ${_format_amount(amount)})"
    )


async def create_alert(
    txn: TransactionDB,
    session: AsyncSession,
    config: FraudConfig | None = None,
    rule_alerts: list[dict[str, Any]] | None = None,
) -> AlertDB | None:
    """Add an alert for a persisted transaction if it crosses the thresholds.

    The caller commits. Returns None when no alert is warranted.
    """
    if not should_alert(txn.risk_score, txn.amount, config):
        return None

    severity = severity_for(txn.risk_score, txn.amount, config)
    metadata: dict[str, Any] = {
        "transaction_status": txn.status,
        "merchant_id": txn.merchant_id,
        "payment_method": txn.payment_method,
        "location": txn.location,
    }
    if rule_alerts:
        metadata["rule_alerts"] = rule_alerts

    alert = AlertDB(
        alert_id=str(uuid.uuid4()),
        transaction_id=txn.transaction_id,
        message=build_alert_message(severity, txn.risk_score, txn.amount),
        severity=severity.value,
        status=AlertStatus.ACTIVE.value,
        transaction_amount=txn.amount,
        transaction_risk_score=txn.risk_score,
        user_id=txn.user_id,
        metadata_=metadata,
        created_at=datetime.now(UTC),
    )
    session.add(alert)

    logger.warning(
        "fraud_alert_created",
        alert_id=alert.alert_id,
        transaction_id=txn.transaction_id,
        user_id=txn.user_id,
        severity=severity.value,
        risk_score=txn.risk_score,
        amount=txn.amount,
    )
    return alert


_ACK_FROM = frozenset({AlertStatus.ACTIVE})
_CLOSE_FROM = frozenset({AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED})


class AlertLifecycle:
    """Moves alerts through ACTIVE -> ACKNOWLEDGED -> RESOLVED | DISMISSED.

    RESOLVED and DISMISSED are terminal. Every committed transition is
    fanned out through the hub and invalidates cached alert listings.
    """

    def __init__(self, hub=None, cache=None) -> None:
        self._hub = hub
        self._cache = cache

    async def get(self, session: AsyncSession, alert_id: str) -> AlertDB:
        result = await session.execute(select(AlertDB).where(AlertDB.alert_id == alert_id))
        alert = result.scalar_one_or_none()
        if alert is None:
            raise NotFoundError(f"Alert {alert_id} not found")
        return alert

    async def acknowledge(self, session: AsyncSession, alert_id: str, actor: str) -> AlertDB:
        return await self._transition(
            session, alert_id, AlertStatus.ACKNOWLEDGED, _ACK_FROM, actor, None, "acknowledged"
        )

    async def resolve(
        self, session: AsyncSession, alert_id: str, actor: str, notes: str | None = None
    ) -> AlertDB:
        return await self._transition(
            session, alert_id, AlertStatus.RESOLVED, _CLOSE_FROM, actor, notes, "resolved"
        )

    async def dismiss(
        self, session: AsyncSession, alert_id: str, actor: str, notes: str | None = None
    ) -> AlertDB:
        return await self._transition(
            session, alert_id, AlertStatus.DISMISSED, _CLOSE_FROM, actor, notes, "dismissed"
        )

    async def delete(self, session: AsyncSession, alert_id: str, actor: str = "system") -> None:
        alert = await self.get(session, alert_id)
        await session.delete(alert)
        await session.commit()

        logger.info("alert_deleted", alert_id=alert_id, actor=actor)
        if self._hub is not None:
            self._hub.alert_deleted(alert_id)
        if self._cache is not None:
            await self._cache.invalidate(*ALERT_CACHE_PATTERNS)

    async def _transition(
        self,
        session: AsyncSession,
        alert_id: str,
        target: AlertStatus,
        allowed_from: frozenset[AlertStatus],
        actor: str,
        notes: str | None,
        action: str,
    ) -> AlertDB:
        alert = await self.get(session, alert_id)
        current = AlertStatus(alert.status)
        if current not in allowed_from:
            raise InvalidTransitionError(
                f"Cannot move alert from {current.value} to {target.value}",
                details={"alert_id": alert_id, "from": current.value, "to": target.value},
            )

        now = datetime.now(UTC)
        alert.status = target.value
        if target == AlertStatus.ACKNOWLEDGED:
            alert.acknowledged_by = actor
            alert.acknowledged_at = now
        else:
            alert.resolved_by = actor
            alert.resolved_at = now
            if notes is not None:
                alert.notes = notes

        await session.commit()

        logger.info(
            "alert_transitioned",
            alert_id=alert_id,
            from_status=current.value,
            to_status=target.value,
            actor=actor,
        )
        if self._hub is not None:
            self._hub.alert_transitioned(action, alert.to_dict())
        if self._cache is not None:
            await self._cache.invalidate(*ALERT_CACHE_PATTERNS)
        return alert
