"""FastAPI application entry point for the fraud monitor."""

import asyncio
import contextlib
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.middleware.error_handler import fraud_monitor_error_handler, global_exception_handler
from src.api.middleware.logging import StructuredLoggingMiddleware
from src.api.routes.alerts import router as alerts_router
from src.api.routes.health import router as health_router
from src.api.routes.realtime import router as realtime_router
from src.api.routes.rules import router as rules_router
from src.api.routes.transactions import router as transactions_router
from src.config import settings
from src.domains.fraud.alerts import AlertLifecycle
from src.domains.fraud.config import FraudConfig
from src.domains.fraud.pipeline import TransactionPipeline
from src.realtime.hub import EventHub
from src.shared.cache import ResponseCache
from src.shared.errors import FraudMonitorError
from src.shared.logging import setup_logging
from src.shared.rate_limit import WriteRateLimiter

logger = structlog.get_logger()

# Track app start time for uptime calculation
APP_START_TIME: float = 0.0


def configure_services(
    app: FastAPI,
    producer=None,
    redis_client: aioredis.Redis | None = None,
    config: FraudConfig | None = None,
) -> None:
    """Wire the hub, cache, rate limiter and domain services onto ``app.state``."""
    hub = EventHub(
        producer=producer,
        transactions_topic=settings.kafka_transactions_topic,
        alerts_topic=settings.kafka_alerts_topic,
        source=settings.event_source,
        heartbeat_interval=settings.ws_heartbeat_interval_seconds,
        max_missed_heartbeats=settings.ws_max_missed_heartbeats,
        queue_size=settings.ws_queue_size,
    )
    cache = None
    rate_limiter = None
    if redis_client is not None:
        cache = ResponseCache(
            redis_client,
            prefix=settings.cache_prefix,
            ttl_seconds=settings.cache_ttl_seconds,
            retry_seconds=settings.cache_retry_seconds,
            enabled=settings.cache_enabled,
            operation_timeout=settings.cache_operation_timeout_seconds,
        )
        rate_limiter = WriteRateLimiter(
            redis_client,
            max_requests=settings.rate_limit_write_max,
            window_seconds=settings.rate_limit_write_window_seconds,
            enabled=settings.rate_limit_enabled,
        )

    app.state.hub = hub
    app.state.cache = cache
    app.state.rate_limiter = rate_limiter
    app.state.pipeline = TransactionPipeline(config=config, hub=hub, cache=cache)
    app.state.alert_lifecycle = AlertLifecycle(hub=hub, cache=cache)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown logic."""
    global APP_START_TIME
    APP_START_TIME = time.time()
    setup_logging(settings.log_level, settings.log_format)

    logger.info(
        "fraud_monitor_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
    )

    # Initialize database tables
    from src.db.database import init_db

    await init_db()

    producer = None
    if settings.kafka_enabled:
        try:
            from src.shared.kafka_utils import create_producer

            producer = await create_producer(settings.kafka_bootstrap_servers)
        except Exception:
            logger.warning("kafka_producer_failed_to_start", exc_info=True)

    redis_client = aioredis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=settings.redis_socket_timeout_seconds,
        socket_connect_timeout=settings.redis_connect_timeout_seconds,
    )
    configure_services(
        app, producer=producer, redis_client=redis_client, config=FraudConfig.from_env()
    )
    hub: EventHub = app.state.hub

    background: list[asyncio.Task] = [asyncio.create_task(hub.heartbeat())]

    # Start Kafka consumers as background tasks
    consumers = []
    if settings.kafka_enabled:
        try:
            from src.consumers.alert_consumer import AlertConsumer
            from src.consumers.transaction_consumer import TransactionConsumer

            kafka_servers = settings.kafka_bootstrap_servers
            group_id = settings.kafka_consumer_group

            consumers = [
                TransactionConsumer(
                    bootstrap_servers=kafka_servers,
                    topic=settings.kafka_transactions_topic,
                    pipeline=app.state.pipeline,
                    group_id=group_id,
                    auto_offset_reset=settings.kafka_auto_offset_reset,
                    own_source=settings.event_source,
                ),
                AlertConsumer(
                    bootstrap_servers=kafka_servers,
                    topic=settings.kafka_alerts_topic,
                    hub=hub,
                    source=settings.event_source,
                    group_id=group_id,
                ),
            ]
            for consumer in consumers:
                background.append(asyncio.create_task(consumer.start()))

            logger.info("kafka_consumers_started", count=len(consumers))
        except Exception:
            logger.warning("kafka_consumers_failed_to_start", exc_info=True)

    yield

    # Shutdown consumers
    for consumer in consumers:
        with contextlib.suppress(Exception):
            await consumer.stop()
    for task in background:
        task.cancel()
    await hub.drain()
    if producer is not None:
        with contextlib.suppress(Exception):
            await producer.stop()
    if app.state.cache is not None:
        with contextlib.suppress(Exception):
            await app.state.cache.close()
    logger.info("fraud_monitor_shutting_down")


app = FastAPI(
    title="Fraud Monitor",
    description="Real-time transaction risk scoring, rules and alerting",
    version=settings.app_version,
    lifespan=lifespan,
)

# Kafka and Redis are attached when the lifespan rewires these
configure_services(app)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Structured logging middleware
app.add_middleware(StructuredLoggingMiddleware)

# Exception handlers
app.add_exception_handler(FraudMonitorError, fraud_monitor_error_handler)
app.add_exception_handler(Exception, global_exception_handler)

# Register routers
app.include_router(health_router)
app.include_router(transactions_router)
app.include_router(alerts_router)
app.include_router(rules_router)
app.include_router(realtime_router)


def get_uptime() -> int:
    """Get application uptime in seconds."""
    if APP_START_TIME == 0.0:
        return 0
    return int(time.time() - APP_START_TIME)
