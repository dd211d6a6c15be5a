"""Administration of the declarative fraud rules."""

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_actor, limit_writes
from src.db.database import get_session
from src.db.models import Rule as RuleDB
from src.domains.fraud.models import RuleCreate, RuleUpdate
from src.shared.errors import NotFoundError

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/rules", tags=["rules"])


async def _get_rule(session: AsyncSession, rule_id: int) -> RuleDB:
    rule = await session.get(RuleDB, rule_id)
    if rule is None:
        raise NotFoundError(f"Rule {rule_id} not found")
    return rule


@router.get("")
async def list_rules(
    active: bool | None = Query(None),
    session: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict:
    stmt = select(RuleDB).order_by(
        RuleDB.priority.desc(), RuleDB.created_at.asc(), RuleDB.id.asc()
    )
    if active is not None:
        stmt = stmt.where(RuleDB.is_active.is_(active))
    result = await session.execute(stmt)
    rules = [r.to_dict() for r in result.scalars().all()]
    return {"rules": rules, "total": len(rules)}


@router.post("", status_code=201, dependencies=[Depends(limit_writes)])
async def create_rule(
    payload: RuleCreate,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    actor: str = Depends(get_actor),  # noqa: B008
) -> dict:
    data = payload.model_dump(mode="json")
    rule = RuleDB(**data, created_by=actor, updated_by=actor)
    session.add(rule)
    await session.commit()

    logger.info("rule_created", rule_id=rule.id, rule_name=rule.name, priority=rule.priority)
    return rule.to_dict()


@router.get("/{rule_id}")
async def get_rule(
    rule_id: int,
    session: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict:
    rule = await _get_rule(session, rule_id)
    return rule.to_dict()


@router.patch("/{rule_id}", dependencies=[Depends(limit_writes)])
async def update_rule(
    rule_id: int,
    changes: RuleUpdate,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    actor: str = Depends(get_actor),  # noqa: B008
) -> dict:
    rule = await _get_rule(session, rule_id)
    fields = changes.model_dump(mode="json", exclude_unset=True)
    for key, value in fields.items():
        setattr(rule, key, value)
    rule.updated_by = actor
    await session.commit()

    logger.info("rule_updated", rule_id=rule_id, fields=sorted(fields), actor=actor)
    return rule.to_dict()
