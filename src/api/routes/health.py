"""Health and readiness endpoints."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from src.config import settings
from src.db.database import check_db

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict:
    from src.main import get_uptime

    return {
        "status": "healthy",
        "version": settings.app_version,
        "uptime_seconds": get_uptime(),
        "websocket": request.app.state.hub.stats(),
    }


@router.get("/ready")
async def ready(request: Request) -> JSONResponse:
    db_ok = await check_db()

    cache = getattr(request.app.state, "cache", None)
    redis_ok = await cache.ping() if cache is not None else False
    kafka_ok = request.app.state.hub.producer is not None

    # Redis and Kafka are best-effort; only the database gates readiness
    status_code = 200 if db_ok else 503
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ready" if db_ok and redis_ok else ("degraded" if db_ok else "unavailable"),
            "kafka": kafka_ok,
            "database": db_ok,
            "redis": redis_ok,
        },
    )
