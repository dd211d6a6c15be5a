"""Integration tests for the ingestion pipeline against an in-memory database."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select

from src.db.models import Alert as AlertDB
from src.db.models import Rule as RuleDB
from src.db.models import Transaction as TransactionDB
from src.domains.fraud.models import (
    IngestSource,
    TransactionCreate,
    TransactionStatus,
    TransactionUpdate,
)
from src.domains.fraud.pipeline import TRANSACTION_CACHE_PATTERNS, TransactionPipeline
from src.shared.errors import ConflictError, NotFoundError

pytestmark = pytest.mark.integration


async def _count(session, model, **where) -> int:
    stmt = select(func.count()).select_from(model)
    for column, value in where.items():
        stmt = stmt.where(getattr(model, column) == value)
    return await session.scalar(stmt)


@pytest.fixture
def hub():
    return MagicMock()


@pytest.fixture
def cache():
    cache = MagicMock()
    cache.invalidate = AsyncMock(return_value=0)
    return cache


@pytest.fixture
def pipeline(hub, cache):
    return TransactionPipeline(hub=hub, cache=cache)


class TestIngest:
    @pytest.mark.asyncio
    async def test_high_value_safe_transaction_raises_medium_alert(self, db, pipeline, hub):
        payload = TransactionCreate.model_validate(
            {"transactionId": "TXN1", "userId": "user_001", "amount": 60000, "riskScore": 0}
        )
        txn = await pipeline.ingest(payload, db)

        assert txn.status == "SAFE"
        assert txn.risk_score == 0
        alerts = (await db.execute(select(AlertDB))).scalars().all()
        assert len(alerts) == 1
        assert alerts[0].severity == "MEDIUM"
        assert alerts[0].transaction_id == "TXN1"
        hub.transaction_created.assert_called_once()
        hub.alert_created.assert_called_once()

    @pytest.mark.asyncio
    async def test_high_risk_transaction_is_fraud_with_critical_alert(self, db, pipeline):
        payload = TransactionCreate.model_validate(
            {"transactionId": "TXN2", "userId": "user_002", "amount": 500, "riskScore": 95}
        )
        txn = await pipeline.ingest(payload, db)

        assert txn.status == "FRAUD"
        alert = (await db.execute(select(AlertDB))).scalar_one()
        assert alert.severity == "CRITICAL"
        assert alert.message == (
            "CRITICAL: High-risk transaction detected (Risk: 95, Amount: $500)"
        )

    @pytest.mark.asyncio
    async def test_score_computed_when_absent(self, db, pipeline, hub):
        payload = TransactionCreate.model_validate(
            {
                "userId": "user_003",
                "amount": 20,
                "paymentMethod": "CREDIT_CARD",
                "timestamp": "2026-01-15T14:00:00+00:00",
            }
        )
        txn = await pipeline.ingest(payload, db)

        assert txn.transaction_id.startswith("TXN_")
        assert txn.risk_score == 5
        assert txn.status == "SAFE"
        assert await _count(db, AlertDB) == 0
        hub.alert_created.assert_not_called()

    @pytest.mark.asyncio
    async def test_caller_status_is_honoured(self, db, pipeline):
        payload = TransactionCreate(
            transaction_id="TXN3", user_id="u", amount=10, risk_score=10,
            status=TransactionStatus.SUSPICIOUS,
        )
        txn = await pipeline.ingest(payload, db)
        assert txn.status == "SUSPICIOUS"

    @pytest.mark.asyncio
    async def test_cache_invalidated_after_ingest(self, db, pipeline, cache):
        await pipeline.ingest(TransactionCreate(user_id="u", amount=10, risk_score=0), db)
        patterns = cache.invalidate.await_args.args
        assert TRANSACTION_CACHE_PATTERNS[0] in patterns
        assert "/api/v1/alerts*" in patterns

    @pytest.mark.asyncio
    async def test_alert_failure_keeps_committed_transaction(
        self, db, pipeline, hub, cache, monkeypatch
    ):
        async def broken_create_alert(txn, session, config=None, rule_alerts=None):
            alert = AlertDB(
                alert_id="broken",
                transaction_id=txn.transaction_id,
                message=None,
                severity="MEDIUM",
                status="ACTIVE",
            )
            session.add(alert)
            return alert

        monkeypatch.setattr("src.domains.fraud.pipeline.create_alert", broken_create_alert)
        payload = TransactionCreate(
            transaction_id="TXN_Q", user_id="u", amount=60000, risk_score=0
        )
        txn = await pipeline.ingest(payload, db)

        assert txn.transaction_id == "TXN_Q"
        assert txn.to_dict()["transaction_id"] == "TXN_Q"
        assert await _count(db, TransactionDB, transaction_id="TXN_Q") == 1
        assert await _count(db, AlertDB) == 0
        hub.transaction_created.assert_called_once()
        hub.alert_created.assert_not_called()
        cache.invalidate.assert_awaited_once()


class TestRulesDuringIngest:
    @pytest.mark.asyncio
    async def test_block_rule_forces_fraud_and_counts_execution(self, db, pipeline):
        db.add(
            RuleDB(
                name="block wallets abroad",
                priority=5,
                conditions=[
                    {"field": "paymentMethod", "operator": "equals", "value": "DIGITAL_WALLET"},
                    {"field": "location.country", "operator": "in", "value": ["XX", "YY"]},
                ],
                actions=[
                    {"type": "flag", "parameters": {"reason": "wallet abroad"}},
                    {"type": "block", "parameters": {}},
                ],
            )
        )
        await db.commit()

        payload = TransactionCreate.model_validate(
            {
                "transactionId": "TXN_RULE",
                "userId": "user_001",
                "amount": 100,
                "riskScore": 10,
                "paymentMethod": "DIGITAL_WALLET",
                "location": {"country": "XX"},
            }
        )
        txn = await pipeline.ingest(payload, db)

        assert txn.status == "FRAUD"
        assert txn.flags[0]["reason"] == "wallet abroad"
        rule = (await db.execute(select(RuleDB))).scalar_one()
        await db.refresh(rule)
        assert rule.execution_count == 1
        assert rule.last_executed_at is not None

    @pytest.mark.asyncio
    async def test_score_adjustment_can_trigger_alert(self, db, pipeline):
        db.add(
            RuleDB(
                name="boost wallets",
                conditions=[
                    {"field": "paymentMethod", "operator": "equals", "value": "DIGITAL_WALLET"}
                ],
                actions=[{"type": "score_adjustment", "parameters": {"adjustment": 70}}],
            )
        )
        await db.commit()

        payload = TransactionCreate(
            transaction_id="TXN_BOOST", user_id="u", amount=10, risk_score=15,
            payment_method="DIGITAL_WALLET",
        )
        txn = await pipeline.ingest(payload, db)

        assert txn.risk_score == 85
        assert txn.status == "FRAUD"
        alert = (await db.execute(select(AlertDB))).scalar_one()
        assert alert.severity == "HIGH"

    @pytest.mark.asyncio
    async def test_inactive_rules_are_ignored(self, db, pipeline):
        db.add(
            RuleDB(
                name="disabled",
                is_active=False,
                conditions=[{"field": "amount", "operator": "greater_than", "value": 0}],
                actions=[{"type": "block", "parameters": {}}],
            )
        )
        await db.commit()

        txn = await pipeline.ingest(TransactionCreate(user_id="u", amount=5, risk_score=0), db)
        assert txn.status == "SAFE"


class TestDuplicates:
    @pytest.mark.asyncio
    async def test_api_duplicate_conflicts(self, db, pipeline):
        payload = TransactionCreate(transaction_id="TXN_DUP", user_id="u", amount=10)
        await pipeline.ingest(payload, db)

        with pytest.raises(ConflictError):
            await pipeline.ingest(payload, db, IngestSource.API)
        assert await _count(db, TransactionDB, transaction_id="TXN_DUP") == 1

    @pytest.mark.asyncio
    async def test_consumer_duplicate_is_skipped_silently(self, db, pipeline, hub):
        payload = TransactionCreate(
            transaction_id="TXN_DUP", user_id="u", amount=60000, risk_score=0
        )
        first = await pipeline.ingest(payload, db, IngestSource.CONSUMER)
        hub.reset_mock()

        second = await pipeline.ingest(payload, db, IngestSource.CONSUMER)

        assert first is not None
        assert second is None
        assert await _count(db, TransactionDB) == 1
        assert await _count(db, AlertDB) == 1
        hub.transaction_created.assert_not_called()
        hub.alert_created.assert_not_called()

    @pytest.mark.asyncio
    async def test_insert_race_is_treated_as_duplicate(self, db, pipeline, monkeypatch):
        payload = TransactionCreate(transaction_id="TXN_RACE", user_id="u", amount=10)
        await pipeline.ingest(payload, db)
        # Simulate a concurrent writer winning between the lookup and the insert
        monkeypatch.setattr(pipeline, "_find", AsyncMock(return_value=None))

        assert await pipeline.ingest(payload, db, IngestSource.CONSUMER) is None
        with pytest.raises(ConflictError):
            await pipeline.ingest(payload, db, IngestSource.API)


class TestReviewerUpdates:
    @pytest.mark.asyncio
    async def test_mark_fraud_records_reviewer(self, db, pipeline, hub):
        await pipeline.ingest(TransactionCreate(transaction_id="T1", user_id="u", amount=10), db)

        txn = await pipeline.mark_fraud(db, "T1", actor="analyst_1", notes="chargeback")

        assert txn.status == "FRAUD"
        assert txn.reviewed_by == "analyst_1"
        assert txn.reviewed_at is not None
        assert txn.notes == "chargeback"
        assert txn.updated_by == "analyst_1"
        hub.transaction_updated.assert_called_once()

    @pytest.mark.asyncio
    async def test_update_keeps_status_as_given(self, db, pipeline):
        await pipeline.ingest(
            TransactionCreate(transaction_id="T1", user_id="u", amount=10, risk_score=95), db
        )
        txn = await pipeline.update(
            db, "T1", TransactionUpdate(status=TransactionStatus.SAFE, risk_score=99), "analyst"
        )
        assert txn.status == "SAFE"
        assert txn.risk_score == 99

    @pytest.mark.asyncio
    async def test_update_without_status_change_is_not_a_review(self, db, pipeline):
        await pipeline.ingest(TransactionCreate(transaction_id="T1", user_id="u", amount=10), db)
        txn = await pipeline.update(
            db, "T1", TransactionUpdate(description="groceries"), "analyst"
        )
        assert txn.description == "groceries"
        assert txn.reviewed_by is None

    @pytest.mark.asyncio
    async def test_delete(self, db, pipeline, hub):
        await pipeline.ingest(TransactionCreate(transaction_id="T1", user_id="u", amount=10), db)
        await pipeline.delete(db, "T1", "admin")

        hub.transaction_deleted.assert_called_once_with("T1")
        with pytest.raises(NotFoundError):
            await pipeline.get(db, "T1")

    @pytest.mark.asyncio
    async def test_update_unknown(self, db, pipeline):
        with pytest.raises(NotFoundError):
            await pipeline.mark_safe(db, "nope")
