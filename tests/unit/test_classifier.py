"""Tests for creation-time status classification."""

import pytest

from src.domains.fraud.classifier import classify_status, status_from_score
from src.domains.fraud.config import FraudConfig
from src.domains.fraud.models import TransactionStatus

CONFIG = FraudConfig()


class TestStatusFromScore:
    @pytest.mark.parametrize(
        "score,expected",
        [
            (0, TransactionStatus.SAFE),
            (49, TransactionStatus.SAFE),
            (50, TransactionStatus.SUSPICIOUS),
            (79, TransactionStatus.SUSPICIOUS),
            (80, TransactionStatus.FRAUD),
            (100, TransactionStatus.FRAUD),
        ],
    )
    def test_thresholds(self, score, expected):
        assert status_from_score(score, CONFIG) == expected


class TestClassifyStatus:
    def test_forced_status_wins(self):
        status = classify_status(
            10,
            forced_status=TransactionStatus.FRAUD,
            requested_status=TransactionStatus.SUSPICIOUS,
            config=CONFIG,
        )
        assert status == TransactionStatus.FRAUD

    def test_caller_status_honoured(self):
        status = classify_status(95, requested_status=TransactionStatus.SUSPICIOUS, config=CONFIG)
        assert status == TransactionStatus.SUSPICIOUS

    def test_safe_placeholder_is_rederived(self):
        status = classify_status(95, requested_status=TransactionStatus.SAFE, config=CONFIG)
        assert status == TransactionStatus.FRAUD

    def test_derived_when_nothing_supplied(self):
        assert classify_status(60, config=CONFIG) == TransactionStatus.SUSPICIOUS

    def test_custom_thresholds(self):
        config = FraudConfig()
        config.status.fraud_min_score = 60
        assert classify_status(60, config=config) == TransactionStatus.FRAUD
