"""Kafka producer helpers and the event envelope shared by producers and consumers."""

import json
from datetime import UTC, datetime
from typing import Any

import structlog
from aiokafka import AIOKafkaProducer

logger = structlog.get_logger()


def build_envelope(
    event_type: str,
    entity_name: str,
    entity: dict[str, Any],
    source: str,
    action: str | None = None,
) -> dict[str, Any]:
    """Wrap an entity as ``{eventType, <entity_name>, timestamp, source[, action]}``."""
    envelope: dict[str, Any] = {
        "eventType": event_type,
        entity_name: entity,
        "timestamp": datetime.now(UTC).isoformat(),
        "source": source,
    }
    if action is not None:
        envelope["action"] = action
    return envelope


async def create_producer(bootstrap_servers: str) -> AIOKafkaProducer:
    """Create and start a Kafka producer."""
    producer = AIOKafkaProducer(
        bootstrap_servers=bootstrap_servers,
        value_serializer=lambda v: json.dumps(v, default=str).encode("utf-8"),
    )
    await producer.start()
    logger.info("kafka_producer_started", bootstrap_servers=bootstrap_servers)
    return producer
