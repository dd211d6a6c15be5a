"""Alert endpoints: listing and lifecycle transitions."""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_actor, get_alert_lifecycle, get_cache, limit_writes
from src.db.database import get_session
from src.db.models import Alert as AlertDB
from src.domains.fraud.alerts import AlertLifecycle
from src.domains.fraud.models import AlertStatus, ReviewNotes, Severity
from src.shared.cache import ResponseCache, cached_response

router = APIRouter(prefix="/api/v1/alerts", tags=["alerts"])


@router.get("")
async def list_alerts(
    request: Request,
    severity: Severity | None = Query(None),  # noqa: B008
    status: AlertStatus | None = Query(None),  # noqa: B008
    transaction_id: str | None = Query(None),
    user_id: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),  # noqa: B008
    cache: ResponseCache | None = Depends(get_cache),  # noqa: B008
) -> dict:
    async def compute() -> dict:
        filters = []
        if severity is not None:
            filters.append(AlertDB.severity == severity.value)
        if status is not None:
            filters.append(AlertDB.status == status.value)
        if transaction_id:
            filters.append(AlertDB.transaction_id == transaction_id)
        if user_id:
            filters.append(AlertDB.user_id == user_id)

        total = await session.scalar(select(func.count()).select_from(AlertDB).where(*filters))
        result = await session.execute(
            select(AlertDB)
            .where(*filters)
            .order_by(AlertDB.created_at.desc(), AlertDB.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return {
            "alerts": [a.to_dict() for a in result.scalars().all()],
            "total": total or 0,
            "limit": limit,
            "offset": offset,
        }

    return await cached_response(cache, request, compute)


@router.get("/stats")
async def alert_stats(
    request: Request,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    cache: ResponseCache | None = Depends(get_cache),  # noqa: B008
) -> dict:
    async def compute() -> dict:
        by_status = {s.value: 0 for s in AlertStatus}
        by_severity = {s.value: 0 for s in Severity}

        rows = await session.execute(
            select(AlertDB.status, AlertDB.severity, func.count()).group_by(
                AlertDB.status, AlertDB.severity
            )
        )
        total = 0
        for status_value, severity_value, count in rows.all():
            by_status[status_value] = by_status.get(status_value, 0) + count
            by_severity[severity_value] = by_severity.get(severity_value, 0) + count
            total += count

        return {"total": total, "by_status": by_status, "by_severity": by_severity}

    return await cached_response(cache, request, compute)


@router.get("/{alert_id}")
async def get_alert(
    alert_id: str,
    request: Request,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    lifecycle: AlertLifecycle = Depends(get_alert_lifecycle),  # noqa: B008
    cache: ResponseCache | None = Depends(get_cache),  # noqa: B008
) -> dict:
    async def compute() -> dict:
        alert = await lifecycle.get(session, alert_id)
        return alert.to_dict()

    return await cached_response(cache, request, compute)


@router.post("/{alert_id}/acknowledge", dependencies=[Depends(limit_writes)])
async def acknowledge_alert(
    alert_id: str,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    lifecycle: AlertLifecycle = Depends(get_alert_lifecycle),  # noqa: B008
    actor: str = Depends(get_actor),  # noqa: B008
) -> dict:
    alert = await lifecycle.acknowledge(session, alert_id, actor)
    return alert.to_dict()


@router.post("/{alert_id}/resolve", dependencies=[Depends(limit_writes)])
async def resolve_alert(
    alert_id: str,
    body: ReviewNotes | None = None,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    lifecycle: AlertLifecycle = Depends(get_alert_lifecycle),  # noqa: B008
    actor: str = Depends(get_actor),  # noqa: B008
) -> dict:
    alert = await lifecycle.resolve(session, alert_id, actor, body.notes if body else None)
    return alert.to_dict()


@router.post("/{alert_id}/dismiss", dependencies=[Depends(limit_writes)])
async def dismiss_alert(
    alert_id: str,
    body: ReviewNotes | None = None,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    lifecycle: AlertLifecycle = Depends(get_alert_lifecycle),  # noqa: B008
    actor: str = Depends(get_actor),  # noqa: B008
) -> dict:
    alert = await lifecycle.dismiss(session, alert_id, actor, body.notes if body else None)
    return alert.to_dict()


@router.delete("/{alert_id}", dependencies=[Depends(limit_writes)])
async def delete_alert(
    alert_id: str,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    lifecycle: AlertLifecycle = Depends(get_alert_lifecycle),  # noqa: B008
    actor: str = Depends(get_actor),  # noqa: B008
) -> dict:
    await lifecycle.delete(session, alert_id, actor)
    return {"deleted": True, "alert_id": alert_id}
