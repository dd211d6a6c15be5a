"""Transaction endpoints: ingestion, listing, reviewer updates."""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_actor, get_cache, get_pipeline, limit_writes
from src.db.database import get_session
from src.db.models import Transaction as TransactionDB
from src.domains.fraud.models import (
    IngestSource,
    ReviewNotes,
    TransactionCreate,
    TransactionStatus,
    TransactionUpdate,
)
from src.domains.fraud.pipeline import TransactionPipeline
from src.shared.cache import ResponseCache, cached_response

router = APIRouter(prefix="/api/v1/transactions", tags=["transactions"])


@router.post("", status_code=201, dependencies=[Depends(limit_writes)])
async def create_transaction(
    payload: TransactionCreate,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    pipeline: TransactionPipeline = Depends(get_pipeline),  # noqa: B008
    actor: str = Depends(get_actor),  # noqa: B008
) -> dict:
    txn = await pipeline.ingest(payload, session, IngestSource.API, actor)
    return txn.to_dict()


@router.get("")
async def list_transactions(
    request: Request,
    status: TransactionStatus | None = Query(None),  # noqa: B008
    user_id: str | None = Query(None),
    min_amount: float | None = Query(None, ge=0),
    max_amount: float | None = Query(None, ge=0),
    min_risk_score: int | None = Query(None, ge=0, le=100),
    max_risk_score: int | None = Query(None, ge=0, le=100),
    search: str | None = Query(None, max_length=100),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),  # noqa: B008
    cache: ResponseCache | None = Depends(get_cache),  # noqa: B008
) -> dict:
    async def compute() -> dict:
        filters = []
        if status is not None:
            filters.append(TransactionDB.status == status.value)
        if user_id:
            filters.append(TransactionDB.user_id == user_id)
        if min_amount is not None:
            filters.append(TransactionDB.amount >= min_amount)
        if max_amount is not None:
            filters.append(TransactionDB.amount <= max_amount)
        if min_risk_score is not None:
            filters.append(TransactionDB.risk_score >= min_risk_score)
        if max_risk_score is not None:
            filters.append(TransactionDB.risk_score <= max_risk_score)
        if search:
            like = f"%{search}%"
            filters.append(
                or_(
                    TransactionDB.transaction_id.ilike(like),
                    TransactionDB.user_id.ilike(like),
                    TransactionDB.merchant_name.ilike(like),
                    TransactionDB.description.ilike(like),
                )
            )

        total = await session.scalar(
            select(func.count()).select_from(TransactionDB).where(*filters)
        )
        result = await session.execute(
            select(TransactionDB)
            .where(*filters)
            .order_by(TransactionDB.created_at.desc(), TransactionDB.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return {
            "transactions": [t.to_dict() for t in result.scalars().all()],
            "total": total or 0,
            "limit": limit,
            "offset": offset,
        }

    return await cached_response(cache, request, compute)


@router.get("/stats")
async def transaction_stats(
    request: Request,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    cache: ResponseCache | None = Depends(get_cache),  # noqa: B008
) -> dict:
    async def compute() -> dict:
        by_status = {s.value: 0 for s in TransactionStatus}
        rows = await session.execute(
            select(TransactionDB.status, func.count()).group_by(TransactionDB.status)
        )
        for status_value, count in rows.all():
            by_status[status_value] = count

        totals = await session.execute(
            select(
                func.count(),
                func.coalesce(func.sum(TransactionDB.amount), 0),
                func.coalesce(func.avg(TransactionDB.risk_score), 0),
            ).select_from(TransactionDB)
        )
        total, total_amount, avg_score = totals.one()
        return {
            "total": total,
            "by_status": by_status,
            "total_amount": round(float(total_amount), 2),
            "average_risk_score": round(float(avg_score), 2),
        }

    return await cached_response(cache, request, compute)


@router.get("/{transaction_id}")
async def get_transaction(
    transaction_id: str,
    request: Request,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    pipeline: TransactionPipeline = Depends(get_pipeline),  # noqa: B008
    cache: ResponseCache | None = Depends(get_cache),  # noqa: B008
) -> dict:
    async def compute() -> dict:
        txn = await pipeline.get(session, transaction_id)
        return txn.to_dict()

    return await cached_response(cache, request, compute)


@router.put("/{transaction_id}", dependencies=[Depends(limit_writes)])
async def update_transaction(
    transaction_id: str,
    changes: TransactionUpdate,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    pipeline: TransactionPipeline = Depends(get_pipeline),  # noqa: B008
    actor: str = Depends(get_actor),  # noqa: B008
) -> dict:
    txn = await pipeline.update(session, transaction_id, changes, actor)
    return txn.to_dict()


@router.post("/{transaction_id}/mark-fraud", dependencies=[Depends(limit_writes)])
async def mark_fraud(
    transaction_id: str,
    body: ReviewNotes | None = None,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    pipeline: TransactionPipeline = Depends(get_pipeline),  # noqa: B008
    actor: str = Depends(get_actor),  # noqa: B008
) -> dict:
    notes = body.notes if body else None
    txn = await pipeline.mark_fraud(session, transaction_id, actor, notes)
    return txn.to_dict()


@router.post("/{transaction_id}/mark-safe", dependencies=[Depends(limit_writes)])
async def mark_safe(
    transaction_id: str,
    body: ReviewNotes | None = None,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    pipeline: TransactionPipeline = Depends(get_pipeline),  # noqa: B008
    actor: str = Depends(get_actor),  # noqa: B008
) -> dict:
    notes = body.notes if body else None
    txn = await pipeline.mark_safe(session, transaction_id, actor, notes)
    return txn.to_dict()


@router.delete("/{transaction_id}", dependencies=[Depends(limit_writes)])
async def delete_transaction(
    transaction_id: str,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    pipeline: TransactionPipeline = Depends(get_pipeline),  # noqa: B008
    actor: str = Depends(get_actor),  # noqa: B008
) -> dict:
    await pipeline.delete(session, transaction_id, actor)
    return {"deleted": True, "transaction_id": transaction_id}
