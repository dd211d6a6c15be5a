"""Real-time fan-out hub: WebSocket connections, rooms, heartbeats and Kafka publish.

Each connection owns a bounded outbound queue drained by its own writer
task, so broadcasting never awaits socket I/O. A slow client loses
messages rather than stalling everyone else.
"""

import asyncio
import contextlib
import json
import uuid
from datetime import UTC, datetime
from typing import Any

import structlog
from starlette.websockets import WebSocket

from src.shared.kafka_utils import build_envelope

logger = structlog.get_logger()

TRANSACTIONS_CHANNEL = "transactions"
ALERTS_CHANNEL = "alerts"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class Connection:
    def __init__(self, websocket: WebSocket, queue_size: int = 256) -> None:
        self.client_id = str(uuid.uuid4())
        self.websocket = websocket
        self.channels: set[str] = set()
        self.rooms: set[str] = set()
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.missed_heartbeats = 0
        # Counts as activity so the first sweep after connecting is not a miss
        self.seen_since_sweep = True
        self.writer: asyncio.Task | None = None

    def wants(self, channel: str | None) -> bool:
        if channel is None or not self.channels:
            return True
        return channel in self.channels

    def enqueue(self, message: dict[str, Any]) -> bool:
        try:
            self.queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            logger.warning(
                "ws_queue_full", client_id=self.client_id, message_type=message.get("type")
            )
            return False

    async def write_loop(self) -> None:
        while True:
            message = await self.queue.get()
            try:
                await self.websocket.send_json(message)
            except Exception:
                logger.debug("ws_send_failed", client_id=self.client_id)
                return


class EventHub:
    """Owns the connection registry and every outbound notification path."""

    def __init__(
        self,
        producer=None,
        transactions_topic: str = "fraud.transactions",
        alerts_topic: str = "fraud.alerts",
        source: str = "fraud-monitor",
        heartbeat_interval: float = 30.0,
        max_missed_heartbeats: int = 2,
        queue_size: int = 256,
    ) -> None:
        self.producer = producer
        self.transactions_topic = transactions_topic
        self.alerts_topic = alerts_topic
        self.source = source
        self.heartbeat_interval = heartbeat_interval
        self.max_missed_heartbeats = max_missed_heartbeats
        self.queue_size = queue_size
        self._connections: dict[str, Connection] = {}
        self._rooms: dict[str, set[str]] = {}
        self._pending: set[asyncio.Task] = set()

    # -- connection registry -------------------------------------------------

    async def connect(self, websocket: WebSocket) -> Connection:
        await websocket.accept()
        conn = Connection(websocket, self.queue_size)
        conn.writer = asyncio.create_task(conn.write_loop())
        self._connections[conn.client_id] = conn
        conn.enqueue(
            {
                "type": "connection",
                "status": "connected",
                "client_id": conn.client_id,
                "timestamp": _now_iso(),
            }
        )
        logger.info("ws_client_connected", client_id=conn.client_id, total=len(self._connections))
        return conn

    async def disconnect(self, conn: Connection) -> None:
        if self._connections.pop(conn.client_id, None) is None:
            return
        for room in list(conn.rooms):
            self._leave(conn, room)
        if conn.writer is not None:
            conn.writer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await conn.writer
        logger.info(
            "ws_client_disconnected", client_id=conn.client_id, total=len(self._connections)
        )

    def _join(self, conn: Connection, room: str) -> None:
        self._rooms.setdefault(room, set()).add(conn.client_id)
        conn.rooms.add(room)

    def _leave(self, conn: Connection, room: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(conn.client_id)
            if not members:
                del self._rooms[room]
        conn.rooms.discard(room)

    # -- outbound ------------------------------------------------------------

    def broadcast(self, message_type: str, payload: Any, channel: str | None = None) -> int:
        message = {"type": message_type, "payload": payload, "timestamp": _now_iso()}
        delivered = 0
        for conn in list(self._connections.values()):
            if conn.wants(channel) and conn.enqueue(message):
                delivered += 1
        logger.debug(
            "ws_broadcast", message_type=message_type, channel=channel, recipients=delivered
        )
        return delivered

    def broadcast_to_room(self, room: str, message_type: str, payload: Any) -> int:
        message = {"type": message_type, "payload": payload, "timestamp": _now_iso()}
        delivered = 0
        for client_id in list(self._rooms.get(room, ())):
            conn = self._connections.get(client_id)
            if conn is not None and conn.enqueue(message):
                delivered += 1
        return delivered

    def publish(self, topic: str, key: str, envelope: dict[str, Any]) -> None:
        """Send to Kafka in the background; failures are logged, never raised."""
        if self.producer is None:
            logger.debug("kafka_producer_not_available", topic=topic, key=key)
            return
        task = asyncio.create_task(self._send(topic, key, envelope))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, topic: str, key: str, envelope: dict[str, Any]) -> None:
        try:
            await self.producer.send_and_wait(topic, value=envelope, key=key.encode("utf-8"))
            logger.debug("event_published", topic=topic, event_type=envelope.get("eventType"))
        except Exception:
            logger.exception("event_publish_failed", topic=topic, key=key)

    async def drain(self) -> None:
        """Wait for in-flight Kafka publishes."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # -- domain events -------------------------------------------------------

    def transaction_created(self, txn: dict[str, Any]) -> None:
        self.broadcast("transaction", txn, TRANSACTIONS_CHANNEL)
        self._publish_transaction("transaction.created", txn)

    def transaction_updated(self, txn: dict[str, Any]) -> None:
        self.broadcast("transaction_update", txn, TRANSACTIONS_CHANNEL)
        self._publish_transaction("transaction.updated", txn)

    def transaction_deleted(self, transaction_id: str) -> None:
        self.broadcast("transaction_delete", {"id": transaction_id}, TRANSACTIONS_CHANNEL)
        self._publish_transaction("transaction.deleted", {"transaction_id": transaction_id})

    def alert_created(self, alert: dict[str, Any]) -> None:
        self.broadcast("alert_created", alert, ALERTS_CHANNEL)
        self._publish_alert("alert.created", alert)

    def alert_transitioned(self, action: str, alert: dict[str, Any]) -> None:
        self.broadcast(f"alert_{action}", alert, ALERTS_CHANNEL)
        self._publish_alert(f"alert.{action}", alert, action=action)

    def alert_deleted(self, alert_id: str) -> None:
        self.broadcast("alert_deleted", {"id": alert_id}, ALERTS_CHANNEL)
        self._publish_alert("alert.deleted", {"alert_id": alert_id}, action="deleted")

    def _publish_transaction(self, event_type: str, txn: dict[str, Any]) -> None:
        envelope = build_envelope(event_type, "transaction", txn, self.source)
        self.publish(self.transactions_topic, txn["transaction_id"], envelope)

    def _publish_alert(
        self, event_type: str, alert: dict[str, Any], action: str | None = None
    ) -> None:
        envelope = build_envelope(event_type, "alert", alert, self.source, action=action)
        key = alert.get("transaction_id") or alert["alert_id"]
        self.publish(self.alerts_topic, key, envelope)

    # -- inbound protocol ----------------------------------------------------

    async def handle_message(self, conn: Connection, raw: str) -> None:
        conn.seen_since_sweep = True
        conn.missed_heartbeats = 0

        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            message = None
        if not isinstance(message, dict):
            conn.enqueue({"type": "error", "message": "Invalid message format"})
            return

        message_type = message.get("type")
        if message_type == "ping":
            conn.enqueue({"type": "pong", "timestamp": _now_iso()})
        elif message_type == "pong":
            return
        elif message_type == "subscribe":
            channels = _str_list(message.get("channels")) or [TRANSACTIONS_CHANNEL]
            conn.channels.update(channels)
            conn.enqueue({"type": "subscribed", "channels": sorted(conn.channels)})
        elif message_type == "unsubscribe":
            channels = _str_list(message.get("channels"))
            if channels:
                conn.channels.difference_update(channels)
            else:
                conn.channels.clear()
            conn.enqueue({"type": "unsubscribed", "channels": sorted(conn.channels)})
        elif message_type == "join_room" and isinstance(message.get("room"), str):
            self._join(conn, message["room"])
            conn.enqueue({"type": "room_joined", "room": message["room"]})
        elif message_type == "leave_room" and isinstance(message.get("room"), str):
            self._leave(conn, message["room"])
            conn.enqueue({"type": "room_left", "room": message["room"]})
        else:
            conn.enqueue({"type": "error", "message": "Unknown message type"})

    # -- liveness ------------------------------------------------------------

    async def sweep(self) -> None:
        """One heartbeat pass: count misses, drop dead clients, ping the rest."""
        for conn in list(self._connections.values()):
            if conn.seen_since_sweep:
                conn.missed_heartbeats = 0
            else:
                conn.missed_heartbeats += 1

            if conn.missed_heartbeats >= self.max_missed_heartbeats:
                logger.info(
                    "ws_client_timed_out",
                    client_id=conn.client_id,
                    missed=conn.missed_heartbeats,
                )
                with contextlib.suppress(Exception):
                    await conn.websocket.close(code=1001)
                await self.disconnect(conn)
                continue

            conn.seen_since_sweep = False
            conn.enqueue({"type": "ping", "timestamp": _now_iso()})

    async def heartbeat(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("ws_heartbeat_failed")

    def stats(self) -> dict[str, int]:
        return {
            "connected_clients": len(self._connections),
            "active_rooms": len(self._rooms),
            "total_room_members": sum(len(m) for m in self._rooms.values()),
        }


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]
