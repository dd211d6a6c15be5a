"""Seeded base generator and the bus envelope it emits."""

import random
import string
from datetime import UTC, datetime, timedelta
from typing import Any

SOURCE = "transaction-generator"

_ID_ALPHABET = string.ascii_uppercase + string.digits


class BaseGenerator:
    def __init__(self, config: dict[str, Any], seed: int = 42):
        self.config = config
        self.seed = seed
        random.seed(seed)

    def _transaction_id(self, when: datetime) -> str:
        """TXN_<epoch ms>_<9 chars>, deterministic for a given seed."""
        suffix = "".join(random.choices(_ID_ALPHABET, k=9))
        return f"TXN_{int(when.timestamp() * 1000)}_{suffix}"

    def _envelope(
        self,
        event_type: str,
        transaction: dict[str, Any],
        timestamp: datetime | None = None,
    ) -> dict[str, Any]:
        return {
            "eventType": event_type,
            "transaction": transaction,
            "timestamp": (timestamp or datetime.now(UTC)).isoformat(),
            "source": SOURCE,
        }

    def _random_datetime(self, start: datetime, end: datetime) -> datetime:
        span = max(1, int((end - start).total_seconds()))
        return start + timedelta(seconds=random.randint(0, span))
