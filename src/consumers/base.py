"""Base Kafka consumer with per-event-type handler routing."""

import json
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from aiokafka import AIOKafkaConsumer

logger = structlog.get_logger()

Handler = Callable[[dict[str, Any]], Awaitable[None]]


class BaseConsumer:
    def __init__(
        self,
        topics: list[str],
        bootstrap_servers: str,
        group_id: str,
        auto_offset_reset: str = "earliest",
        handlers: dict[str, Handler] | None = None,
    ):
        self.topics = topics
        self.bootstrap_servers = bootstrap_servers
        self.group_id = group_id
        self.auto_offset_reset = auto_offset_reset
        self.handlers: dict[str, Handler] = handlers or {}
        self._consumer: AIOKafkaConsumer | None = None
        self._running = False

    def register_handler(self, event_type: str, handler: Handler) -> None:
        self.handlers[event_type] = handler

    async def start(self) -> None:
        self._consumer = AIOKafkaConsumer(
            *self.topics,
            bootstrap_servers=self.bootstrap_servers,
            group_id=self.group_id,
            value_deserializer=_deserialize,
            auto_offset_reset=self.auto_offset_reset,
            enable_auto_commit=True,
        )
        await self._consumer.start()
        self._running = True
        logger.info("consumer_started", topics=self.topics, group_id=self.group_id)
        try:
            async for msg in self._consumer:
                await self._process_message(msg)
        finally:
            await self._consumer.stop()

    async def _process_message(self, msg: Any) -> None:
        try:
            await self.dispatch(msg.value)
        except Exception:
            logger.exception("message_processing_error", topic=msg.topic, offset=msg.offset)

    async def dispatch(self, event: Any) -> None:
        """Route one decoded message to the handler for its ``eventType``."""
        if not isinstance(event, dict):
            logger.warning("malformed_event_skipped", value_type=type(event).__name__)
            return

        event_type = event.get("eventType", "unknown")
        handler = self.handlers.get(event_type)
        if handler is None:
            logger.debug("no_handler_for_event", event_type=event_type)
            return
        await handler(event)

    async def stop(self) -> None:
        self._running = False
        if self._consumer:
            await self._consumer.stop()
            logger.info("consumer_stopped", topics=self.topics)


def _deserialize(raw: bytes | None) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.warning("undecodable_message", size=len(raw))
        return None
