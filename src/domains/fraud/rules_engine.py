"""Declarative rule engine: priority-ordered condition matching and actions."""

from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import Rule as RuleDB

from .models import (
    ActionType,
    Condition,
    FiredRule,
    Flag,
    Operator,
    RuleDefinition,
    RuleEvaluation,
    Severity,
    TransactionDraft,
    TransactionStatus,
)
from .risk_scorer import clamp_score

logger = structlog.get_logger()

_MISSING = object()


def resolve_path(data: dict[str, Any], path: str) -> Any:
    """Walk a dotted path through nested dicts.

    Only dict keys are followed, never attributes. Returns a sentinel when
    any segment is absent.
    """
    current: Any = data
    for segment in path.split("."):
        if not isinstance(current, dict) or segment not in current:
            return _MISSING
        current = current[segment]
    return current


def _to_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _compare(actual: Any, expected: Any, operator: Operator) -> bool:
    left = _to_float(actual)
    right = _to_float(expected)
    if left is None or right is None:
        return False
    if operator == Operator.GREATER_THAN:
        return left > right
    if operator == Operator.LESS_THAN:
        return left < right
    if operator == Operator.GREATER_EQUAL:
        return left >= right
    return left <= right


def evaluate_condition(condition: Condition, data: dict[str, Any]) -> bool:
    actual = resolve_path(data, condition.field)
    if actual is _MISSING:
        return False

    op = condition.operator
    expected = condition.value

    if op == Operator.EQUALS:
        return actual == expected
    if op == Operator.NOT_EQUALS:
        return actual != expected
    if op in (
        Operator.GREATER_THAN,
        Operator.LESS_THAN,
        Operator.GREATER_EQUAL,
        Operator.LESS_EQUAL,
    ):
        return _compare(actual, expected, op)
    if op == Operator.CONTAINS:
        return str(expected).lower() in str(actual).lower()
    if op == Operator.NOT_CONTAINS:
        return str(expected).lower() not in str(actual).lower()
    if op == Operator.IN:
        return isinstance(expected, list) and actual in expected
    if op == Operator.NOT_IN:
        return isinstance(expected, list) and actual not in expected
    return False


def rule_matches(rule: RuleDefinition, data: dict[str, Any]) -> bool:
    """All conditions must hold, so a rule without conditions always matches."""
    return all(evaluate_condition(c, data) for c in rule.conditions)


def _flag_severity(raw: Any) -> Severity:
    try:
        return Severity(str(raw).upper())
    except ValueError:
        return Severity.MEDIUM


def apply_actions(
    rule: RuleDefinition,
    draft: TransactionDraft,
    now: datetime | None = None,
) -> list[ActionType]:
    """Apply a firing rule's actions to the draft in declared order."""
    now = now or datetime.now(UTC)
    applied: list[ActionType] = []

    for action in rule.actions:
        params = action.parameters

        if action.type == ActionType.FLAG:
            draft.flags.append(
                Flag(
                    type=str(params.get("type") or "RULE_VIOLATION"),
                    reason=str(params.get("reason") or f"Rule: {rule.name}"),
                    severity=_flag_severity(params.get("severity", Severity.MEDIUM)),
                    timestamp=now,
                )
            )
        elif action.type == ActionType.SCORE_ADJUSTMENT:
            adjustment = _to_float(params.get("adjustment", 0))
            if adjustment is None:
                logger.warning(
                    "score_adjustment_invalid",
                    rule_id=rule.id,
                    adjustment=params.get("adjustment"),
                )
                continue
            draft.risk_score = clamp_score(draft.risk_score + adjustment)
        elif action.type == ActionType.BLOCK:
            draft.forced_status = TransactionStatus.FRAUD
        elif action.type == ActionType.REVIEW:
            draft.forced_status = TransactionStatus.SUSPICIOUS
        elif action.type == ActionType.ALERT:
            draft.alert_requests.append(
                {"rule_id": rule.id, "rule_name": rule.name, **params}
            )

        applied.append(action.type)

    return applied


class RulesEngine:
    """Evaluates a transaction draft against the active declarative rules.

    Matching is decided once against the incoming draft. Matched rules then
    apply their actions highest priority first, so flags accumulate while a
    later forced status overwrites an earlier one.
    """

    async def load_active_rules(self, session: AsyncSession) -> list[RuleDefinition]:
        stmt = (
            select(RuleDB)
            .where(RuleDB.is_active.is_(True))
            .order_by(RuleDB.priority.desc(), RuleDB.created_at.asc(), RuleDB.id.asc())
        )
        result = await session.execute(stmt)

        rules: list[RuleDefinition] = []
        for row in result.scalars().all():
            try:
                rules.append(
                    RuleDefinition(
                        id=row.id,
                        name=row.name,
                        priority=row.priority,
                        conditions=row.conditions or [],
                        actions=row.actions or [],
                    )
                )
            except ValidationError:
                logger.warning("rule_definition_invalid", rule_id=row.id, rule_name=row.name)
        return rules

    def evaluate(
        self,
        draft: TransactionDraft,
        rules: list[RuleDefinition],
    ) -> RuleEvaluation:
        """Run rules against the draft, mutating it. Returns what fired."""
        score_before = draft.risk_score
        flags_before = len(draft.flags)
        now = datetime.now(UTC)
        fired: list[FiredRule] = []

        # Every rule matches against the draft as it stood before any action ran
        snapshot = draft.lookup_view()
        matched = [r for r in rules if rule_matches(r, snapshot)]

        # sorted() is stable, so equal priorities keep their load order
        for rule in sorted(matched, key=lambda r: -r.priority):
            applied = apply_actions(rule, draft, now)
            fired.append(FiredRule(rule_id=rule.id, rule_name=rule.name, actions=applied))

        evaluation = RuleEvaluation(
            fired_rules=fired,
            flags_added=len(draft.flags) - flags_before,
            score_before=score_before,
            score_after=draft.risk_score,
            forced_status=draft.forced_status,
        )

        logger.info(
            "rules_evaluated",
            transaction_id=draft.transaction_id,
            rule_count=len(rules),
            fired=[r.rule_name for r in fired],
            score_before=score_before,
            score_after=draft.risk_score,
            forced_status=draft.forced_status.value if draft.forced_status else None,
        )
        return evaluation

    async def record_executions(self, session: AsyncSession, fired: list[FiredRule]) -> None:
        """Bump execution counters for fired rules. Caller commits."""
        rule_ids = [r.rule_id for r in fired if r.rule_id is not None]
        if not rule_ids:
            return
        await session.execute(
            update(RuleDB)
            .where(RuleDB.id.in_(rule_ids))
            .values(
                execution_count=RuleDB.execution_count + 1,
                last_executed_at=datetime.now(UTC),
            )
        )
