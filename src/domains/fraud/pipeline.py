"""Transaction pipeline: score -> rules -> classify -> persist -> alert -> notify."""

from datetime import UTC, datetime

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import Alert as AlertDB
from src.db.models import Transaction as TransactionDB
from src.shared.errors import ConflictError, NotFoundError

from .alerts import ALERT_CACHE_PATTERNS, create_alert
from .classifier import classify_status
from .config import FraudConfig, default_config
from .models import (
    IngestSource,
    TransactionCreate,
    TransactionDraft,
    TransactionStatus,
    TransactionUpdate,
    generate_transaction_id,
)
from .risk_scorer import compute_risk_score
from .rules_engine import RulesEngine

logger = structlog.get_logger()

TRANSACTION_CACHE_PATTERNS = ("/api/v1/transactions*",)


class TransactionPipeline:
    """Orchestrates ingestion and reviewer updates of transactions.

    Ingestion is one atomic insert guarded by the unique transaction id.
    Alerting, fan-out and cache invalidation happen after the commit and
    never fail the write.
    """

    def __init__(
        self,
        config: FraudConfig | None = None,
        hub=None,
        cache=None,
    ) -> None:
        self._config = config or default_config
        self._rules_engine = RulesEngine()
        self._hub = hub
        self._cache = cache

    async def get(self, session: AsyncSession, transaction_id: str) -> TransactionDB:
        txn = await self._find(session, transaction_id)
        if txn is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return txn

    async def ingest(
        self,
        payload: TransactionCreate,
        session: AsyncSession,
        source: IngestSource = IngestSource.API,
        actor: str = "system",
    ) -> TransactionDB | None:
        """Run the full creation pipeline for one transaction.

        Returns the stored row, or None when a consumer-sourced duplicate
        was skipped. API-sourced duplicates raise ConflictError.
        """
        transaction_id = payload.transaction_id or generate_transaction_id()

        if await self._find(session, transaction_id) is not None:
            return self._duplicate(transaction_id, source)

        timestamp = payload.timestamp or datetime.now(UTC)
        if payload.risk_score is not None:
            risk_score = payload.risk_score
        else:
            risk_score = compute_risk_score(
                payload.amount,
                payload.payment_method,
                payload.location,
                timestamp,
                self._config,
            )

        draft = TransactionDraft(
            transaction_id=transaction_id,
            user_id=payload.user_id,
            amount=payload.amount,
            currency=payload.currency,
            timestamp=timestamp,
            risk_score=risk_score,
            requested_status=payload.status,
            description=payload.description,
            merchant_id=payload.merchant_id,
            merchant_name=payload.merchant_name,
            payment_method=payload.payment_method,
            location=payload.location,
            metadata=dict(payload.metadata),
        )

        rules = await self._rules_engine.load_active_rules(session)
        evaluation = self._rules_engine.evaluate(draft, rules)
        status = classify_status(
            draft.risk_score, draft.forced_status, draft.requested_status, self._config
        )

        txn = TransactionDB(
            transaction_id=transaction_id,
            user_id=draft.user_id,
            amount=draft.amount,
            currency=draft.currency,
            timestamp=draft.timestamp,
            status=status.value,
            risk_score=draft.risk_score,
            payment_method=draft.payment_method.value,
            merchant_id=draft.merchant_id,
            merchant_name=draft.merchant_name,
            description=draft.description,
            location=draft.location.model_dump(mode="json") if draft.location else None,
            metadata_=draft.metadata,
            flags=[f.model_dump(mode="json") for f in draft.flags],
            created_by=actor,
            updated_by=actor,
            created_at=datetime.now(UTC),
        )
        session.add(txn)
        await self._rules_engine.record_executions(session, evaluation.fired_rules)

        try:
            await session.commit()
        except IntegrityError:
            # Lost the race against a concurrent insert of the same id
            await session.rollback()
            return self._duplicate(transaction_id, source)

        logger.info(
            "transaction_ingested",
            transaction_id=transaction_id,
            user_id=txn.user_id,
            source=source.value,
            risk_score=txn.risk_score,
            status=txn.status,
            rules_fired=len(evaluation.fired_rules),
            flags=len(txn.flags),
        )

        # Detach the committed row so a failed alert rollback cannot expire it
        session.expunge(txn)
        alert = await self._raise_alert(session, txn, draft.alert_requests)

        if self._hub is not None:
            self._hub.transaction_created(txn.to_dict())
            if alert is not None:
                self._hub.alert_created(alert.to_dict())
        await self._invalidate(*TRANSACTION_CACHE_PATTERNS, *ALERT_CACHE_PATTERNS)
        return txn

    async def update(
        self,
        session: AsyncSession,
        transaction_id: str,
        changes: TransactionUpdate,
        actor: str = "system",
    ) -> TransactionDB:
        """Apply a reviewer update. Status is taken as given, never re-derived."""
        txn = await self.get(session, transaction_id)
        fields = changes.model_dump(exclude_unset=True)

        new_status = fields.pop("status", None)
        if new_status is not None and new_status != txn.status:
            txn.status = TransactionStatus(new_status).value
            txn.reviewed_by = actor
            txn.reviewed_at = datetime.now(UTC)

        if "location" in fields:
            location = changes.location
            txn.location = location.model_dump(mode="json") if location else None
            fields.pop("location")
        if "metadata" in fields:
            txn.metadata_ = fields.pop("metadata") or {}
        if fields.get("payment_method") is not None:
            fields["payment_method"] = changes.payment_method.value

        for key, value in fields.items():
            setattr(txn, key, value)
        txn.updated_by = actor

        await session.commit()

        logger.info(
            "transaction_updated",
            transaction_id=transaction_id,
            actor=actor,
            status=txn.status,
            fields=sorted(changes.model_dump(exclude_unset=True)),
        )
        if self._hub is not None:
            self._hub.transaction_updated(txn.to_dict())
        await self._invalidate(*TRANSACTION_CACHE_PATTERNS)
        return txn

    async def mark_fraud(
        self,
        session: AsyncSession,
        transaction_id: str,
        actor: str = "system",
        notes: str | None = None,
    ) -> TransactionDB:
        return await self._mark(session, transaction_id, TransactionStatus.FRAUD, actor, notes)

    async def mark_safe(
        self,
        session: AsyncSession,
        transaction_id: str,
        actor: str = "system",
        notes: str | None = None,
    ) -> TransactionDB:
        return await self._mark(session, transaction_id, TransactionStatus.SAFE, actor, notes)

    async def _mark(
        self,
        session: AsyncSession,
        transaction_id: str,
        status: TransactionStatus,
        actor: str,
        notes: str | None,
    ) -> TransactionDB:
        fields: dict = {"status": status}
        if notes is not None:
            fields["notes"] = notes
        return await self.update(session, transaction_id, TransactionUpdate(**fields), actor)

    async def delete(
        self, session: AsyncSession, transaction_id: str, actor: str = "system"
    ) -> None:
        txn = await self.get(session, transaction_id)
        await session.delete(txn)
        await session.commit()

        logger.info("transaction_deleted", transaction_id=transaction_id, actor=actor)
        if self._hub is not None:
            self._hub.transaction_deleted(transaction_id)
        await self._invalidate(*TRANSACTION_CACHE_PATTERNS)

    async def _find(self, session: AsyncSession, transaction_id: str) -> TransactionDB | None:
        result = await session.execute(
            select(TransactionDB).where(TransactionDB.transaction_id == transaction_id)
        )
        return result.scalar_one_or_none()

    def _duplicate(self, transaction_id: str, source: IngestSource) -> None:
        if source == IngestSource.API:
            raise ConflictError(
                f"Transaction {transaction_id} already exists",
                details={"transaction_id": transaction_id},
            )
        logger.info("duplicate_transaction_skipped", transaction_id=transaction_id)
        return None

    async def _raise_alert(
        self,
        session: AsyncSession,
        txn: TransactionDB,
        rule_alerts: list[dict],
    ) -> AlertDB | None:
        transaction_id = txn.transaction_id
        try:
            alert = await create_alert(txn, session, self._config, rule_alerts)
            if alert is None:
                return None
            await session.commit()
            return alert
        except Exception:
            logger.exception("alert_creation_failed", transaction_id=transaction_id)
            await session.rollback()
            return None

    async def _invalidate(self, *patterns: str) -> None:
        if self._cache is not None:
            await self._cache.invalidate(*patterns)
