"""Tests for wire models and the transaction draft."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from src.domains.fraud.models import (
    PaymentMethod,
    RuleCreate,
    TransactionCreate,
    TransactionDraft,
    TransactionStatus,
    generate_transaction_id,
)


class TestTransactionCreate:
    def test_accepts_camel_case(self):
        payload = TransactionCreate.model_validate(
            {
                "transactionId": "TXN_1",
                "userId": "user_001",
                "amount": 12.5,
                "riskScore": 40,
                "paymentMethod": "DIGITAL_WALLET",
                "location": {"country": "US", "ipAddress": "10.0.0.1"},
            }
        )
        assert payload.transaction_id == "TXN_1"
        assert payload.risk_score == 40
        assert payload.payment_method == PaymentMethod.DIGITAL_WALLET
        assert payload.location.ip_address == "10.0.0.1"

    def test_accepts_snake_case_and_defaults(self):
        payload = TransactionCreate(user_id="user_001", amount=1, currency="usd")
        assert payload.currency == "USD"
        assert payload.payment_method == PaymentMethod.OTHER
        assert payload.risk_score is None
        assert payload.metadata == {}

    @pytest.mark.parametrize(
        "field,value",
        [
            ("amount", -1),
            ("amount", 1_000_001),
            ("riskScore", 101),
            ("paymentMethod", "CASH"),
            ("status", "MAYBE"),
            ("userId", ""),
        ],
    )
    def test_rejects_invalid(self, field, value):
        data = {"userId": "user_001", "amount": 10, field: value}
        with pytest.raises(ValidationError):
            TransactionCreate.model_validate(data)


class TestRuleCreate:
    def test_priority_bounds(self):
        with pytest.raises(ValidationError):
            RuleCreate(name="r", priority=11)
        with pytest.raises(ValidationError):
            RuleCreate(name="r", priority=0)

    def test_condition_field_path(self):
        rule = RuleCreate.model_validate(
            {
                "name": "foreign",
                "conditions": [{"field": "location.country", "operator": "in", "value": ["XX"]}],
                "actions": [{"type": "flag", "parameters": {"reason": "geo"}}],
            }
        )
        assert rule.conditions[0].field == "location.country"
        with pytest.raises(ValidationError):
            RuleCreate.model_validate(
                {"name": "bad", "conditions": [{"field": "a..b", "operator": "equals"}]}
            )

    def test_unknown_operator(self):
        with pytest.raises(ValidationError):
            RuleCreate.model_validate(
                {"name": "bad", "conditions": [{"field": "amount", "operator": "between"}]}
            )


class TestDraftLookupView:
    def test_both_namings_resolve(self):
        draft = TransactionDraft(
            transaction_id="TXN_1",
            user_id="user_001",
            amount=100.0,
            timestamp=datetime(2026, 1, 15, tzinfo=UTC),
            payment_method=PaymentMethod.CREDIT_CARD,
            location={"country": "US", "ip_address": "10.0.0.1"},
        )
        view = draft.lookup_view()
        assert view["user_id"] == view["userId"] == "user_001"
        assert view["paymentMethod"] == "CREDIT_CARD"
        assert view["location"]["ipAddress"] == "10.0.0.1"
        assert view["status"] == "SAFE"

    def test_status_reflects_forced_status(self):
        draft = TransactionDraft(
            transaction_id="TXN_1",
            user_id="u",
            amount=1.0,
            timestamp=datetime(2026, 1, 15, tzinfo=UTC),
            forced_status=TransactionStatus.FRAUD,
        )
        assert draft.lookup_view()["status"] == "FRAUD"


def test_generated_transaction_id_shape():
    txn_id = generate_transaction_id()
    prefix, millis, suffix = txn_id.split("_")
    assert prefix == "TXN"
    assert millis.isdigit()
    assert len(suffix) == 9
