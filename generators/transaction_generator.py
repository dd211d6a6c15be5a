"""Transaction event generator with fraud-pattern injection."""

import random
from datetime import UTC, datetime, timedelta
from typing import Any

from .base import BaseGenerator
from .utils.catalog import (
    DESCRIPTIONS,
    DEVICE_TYPES,
    MERCHANTS,
    random_high_risk_location,
    random_location,
)
from .utils.distributions import (
    random_ipv4,
    sample_amount,
    sample_high_amount,
    shift_to_late_night,
)

PAYMENT_METHODS = ["CREDIT_CARD", "DEBIT_CARD", "BANK_TRANSFER", "DIGITAL_WALLET"]


class TransactionGenerator(BaseGenerator):
    """Emits ``transaction.created`` envelopes.

    Injection rates in the config turn on individual fraud patterns:
    ``high_amount_rate``, ``late_night_rate``, ``high_risk_country_rate``,
    ``wallet_rate`` and ``duplicate_rate`` (re-sends an earlier event, as a
    redelivering producer would).
    """

    def generate(self, num_transactions: int = 1000) -> list[dict[str, Any]]:
        events: list[dict[str, Any]] = []
        config = self.config

        num_users = config.get("num_users", 100)
        time_span = config.get("time_span_days", 7)
        base_time = datetime(2026, 1, 1, tzinfo=UTC)
        end_time = base_time + timedelta(days=time_span)
        users = [f"user_{i:04d}" for i in range(num_users)]

        amount_dist = config.get(
            "amount_distribution", {"log_normal_mean": 4.5, "log_normal_std": 1.2}
        )

        for _ in range(num_transactions):
            if events and random.random() < config.get("duplicate_rate", 0.0):
                events.append(random.choice(events))
                continue

            txn_time = self._random_datetime(base_time, end_time)
            amount = sample_amount(
                amount_dist["log_normal_mean"], amount_dist["log_normal_std"]
            )
            payment_method = random.choice(PAYMENT_METHODS)
            country, city = random_location()
            patterns: list[str] = []

            if random.random() < config.get("high_amount_rate", 0.0):
                amount = sample_high_amount()
                patterns.append("high_amount")
            if random.random() < config.get("late_night_rate", 0.0):
                txn_time = shift_to_late_night(txn_time)
                patterns.append("late_night")
            if random.random() < config.get("high_risk_country_rate", 0.0):
                country, city = random_high_risk_location()
                patterns.append("high_risk_country")
            if random.random() < config.get("wallet_rate", 0.0):
                payment_method = "DIGITAL_WALLET"
                patterns.append("digital_wallet")

            transaction = {
                "transactionId": self._transaction_id(txn_time),
                "userId": random.choice(users),
                "amount": amount,
                "currency": "USD",
                "timestamp": txn_time.isoformat(),
                "description": random.choice(DESCRIPTIONS),
                "merchantId": f"merchant_{random.randint(1000, 9999)}",
                "merchantName": random.choice(MERCHANTS),
                "paymentMethod": payment_method,
                "location": {
                    "country": country,
                    "city": city,
                    "ipAddress": random_ipv4(),
                },
                "metadata": {
                    "deviceType": random.choice(DEVICE_TYPES),
                    "sessionId": f"session_{random.randint(10000, 99999)}",
                    "injectedPatterns": patterns,
                },
            }
            events.append(self._envelope("transaction.created", transaction, txn_time))

        return events
