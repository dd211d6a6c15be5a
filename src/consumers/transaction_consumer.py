"""Consumer for transaction events from the message bus."""

from typing import Any

import structlog
from pydantic import ValidationError

from src.db.database import async_session_factory
from src.domains.fraud.models import IngestSource, TransactionCreate
from src.domains.fraud.pipeline import TransactionPipeline

from .base import BaseConsumer

logger = structlog.get_logger()


class TransactionConsumer(BaseConsumer):
    """Feeds ``transaction.created`` events through the ingestion pipeline.

    Duplicates are skipped silently, so at-least-once redelivery is safe.
    """

    def __init__(
        self,
        bootstrap_servers: str,
        topic: str,
        pipeline: TransactionPipeline,
        group_id: str = "fraud-monitor",
        auto_offset_reset: str = "earliest",
        session_factory=async_session_factory,
        own_source: str | None = None,
    ) -> None:
        super().__init__(
            topics=[topic],
            bootstrap_servers=bootstrap_servers,
            group_id=group_id,
            auto_offset_reset=auto_offset_reset,
        )
        self._pipeline = pipeline
        self._session_factory = session_factory
        self._own_source = own_source
        self.register_handler("transaction.created", self._handle_created)
        self.register_handler("transaction.updated", self._handle_updated)

    async def _handle_created(self, event: dict[str, Any]) -> None:
        if self._own_source and event.get("source") == self._own_source:
            # Echo of a transaction this service already ingested
            return

        data = event.get("transaction") or {}
        try:
            payload = TransactionCreate.model_validate(data)
        except ValidationError as exc:
            logger.warning(
                "invalid_transaction_event",
                transaction_id=data.get("transactionId") or data.get("transaction_id"),
                errors=exc.error_count(),
            )
            return

        async with self._session_factory() as session:
            txn = await self._pipeline.ingest(
                payload, session, IngestSource.CONSUMER, actor=event.get("source") or "consumer"
            )

        if txn is not None:
            logger.info(
                "transaction_ingested_via_consumer",
                transaction_id=txn.transaction_id,
                risk_score=txn.risk_score,
                status=txn.status,
            )

    async def _handle_updated(self, event: dict[str, Any]) -> None:
        data = event.get("transaction") or {}
        logger.info(
            "transaction_update_event_received",
            transaction_id=data.get("transactionId") or data.get("transaction_id"),
            source=event.get("source"),
        )
