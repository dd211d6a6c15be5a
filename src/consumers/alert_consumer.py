"""Relays alert events published by other services to WebSocket clients."""

from typing import Any

import structlog

from src.realtime.hub import ALERTS_CHANNEL, EventHub

from .base import BaseConsumer

logger = structlog.get_logger()

ALERT_EVENT_TYPES = {
    "alert.created": "alert_created",
    "alert.acknowledged": "alert_acknowledged",
    "alert.resolved": "alert_resolved",
    "alert.dismissed": "alert_dismissed",
    "alert.deleted": "alert_deleted",
}


class AlertConsumer(BaseConsumer):
    def __init__(
        self,
        bootstrap_servers: str,
        topic: str,
        hub: EventHub,
        source: str,
        group_id: str = "fraud-monitor",
        auto_offset_reset: str = "latest",
    ) -> None:
        # Separate group so alert offsets are tracked apart from transactions
        super().__init__(
            topics=[topic],
            bootstrap_servers=bootstrap_servers,
            group_id=f"{group_id}-alerts",
            auto_offset_reset=auto_offset_reset,
        )
        self._hub = hub
        self._source = source
        for event_type in ALERT_EVENT_TYPES:
            self.register_handler(event_type, self._relay)

    async def _relay(self, event: dict[str, Any]) -> None:
        if event.get("source") == self._source:
            # Already broadcast locally when it was produced
            return

        ws_type = ALERT_EVENT_TYPES[event["eventType"]]
        delivered = self._hub.broadcast(ws_type, event.get("alert") or {}, ALERTS_CHANNEL)
        logger.info(
            "alert_event_relayed",
            event_type=event["eventType"],
            source=event.get("source"),
            recipients=delivered,
        )
