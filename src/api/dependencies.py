"""Request-scoped dependencies resolving the services held on ``app.state``."""

from fastapi import Depends, Header, Request

from src.domains.fraud.alerts import AlertLifecycle
from src.domains.fraud.pipeline import TransactionPipeline
from src.realtime.hub import EventHub
from src.shared.cache import ResponseCache


def get_hub(request: Request) -> EventHub:
    return request.app.state.hub


def get_cache(request: Request) -> ResponseCache | None:
    return getattr(request.app.state, "cache", None)


def get_pipeline(request: Request) -> TransactionPipeline:
    return request.app.state.pipeline


def get_alert_lifecycle(request: Request) -> AlertLifecycle:
    return request.app.state.alert_lifecycle


def get_actor(x_actor_id: str | None = Header(default=None)) -> str:
    """Identity of the reviewer, set by the authenticating proxy."""
    return x_actor_id or "system"


async def limit_writes(request: Request, actor: str = Depends(get_actor)) -> None:  # noqa: B008
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        return
    if actor == "system":
        client_id = request.client.host if request.client else "unknown"
    else:
        client_id = actor
    await limiter.hit(client_id)
