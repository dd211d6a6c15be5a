"""Tests for the alert review lifecycle against an in-memory database."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.db.models import Alert as AlertDB
from src.domains.fraud.alerts import ALERT_CACHE_PATTERNS, AlertLifecycle
from src.shared.errors import InvalidTransitionError, NotFoundError


async def _seed_alert(session, alert_id: str = "alert-1", status: str = "ACTIVE") -> AlertDB:
    alert = AlertDB(
        alert_id=alert_id,
        transaction_id="TXN_1",
        message="HIGH: Suspicious transaction detected (Risk: 85, Amount: $500)",
        severity="HIGH",
        status=status,
        transaction_amount=500.0,
        transaction_risk_score=85,
        user_id="user_001",
        metadata_={},
    )
    session.add(alert)
    await session.commit()
    return alert


@pytest.fixture
def hub():
    return MagicMock()


@pytest.fixture
def cache():
    cache = MagicMock()
    cache.invalidate = AsyncMock(return_value=0)
    return cache


class TestTransitions:
    @pytest.mark.asyncio
    async def test_acknowledge_then_resolve(self, db, hub, cache):
        await _seed_alert(db)
        lifecycle = AlertLifecycle(hub=hub, cache=cache)

        alert = await lifecycle.acknowledge(db, "alert-1", "analyst_1")
        assert alert.status == "ACKNOWLEDGED"
        assert alert.acknowledged_by == "analyst_1"
        assert alert.acknowledged_at is not None

        alert = await lifecycle.resolve(db, "alert-1", "analyst_2", notes="confirmed with user")
        assert alert.status == "RESOLVED"
        assert alert.resolved_by == "analyst_2"
        assert alert.notes == "confirmed with user"

        actions = [c.args[0] for c in hub.alert_transitioned.call_args_list]
        assert actions == ["acknowledged", "resolved"]
        cache.invalidate.assert_awaited_with(*ALERT_CACHE_PATTERNS)

    @pytest.mark.asyncio
    async def test_dismiss_directly_from_active(self, db):
        await _seed_alert(db)
        alert = await AlertLifecycle().dismiss(db, "alert-1", "analyst_1")
        assert alert.status == "DISMISSED"
        assert alert.notes is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("terminal", ["RESOLVED", "DISMISSED"])
    async def test_terminal_states_reject_moves(self, db, hub, terminal):
        await _seed_alert(db, status=terminal)
        lifecycle = AlertLifecycle(hub=hub)

        for move in (lifecycle.acknowledge, lifecycle.resolve, lifecycle.dismiss):
            with pytest.raises(InvalidTransitionError) as exc_info:
                await move(db, "alert-1", "analyst_1")
            assert exc_info.value.details["from"] == terminal
            assert exc_info.value.status_code == 409

        hub.alert_transitioned.assert_not_called()

    @pytest.mark.asyncio
    async def test_cannot_acknowledge_twice(self, db):
        await _seed_alert(db)
        lifecycle = AlertLifecycle()
        await lifecycle.acknowledge(db, "alert-1", "analyst_1")
        with pytest.raises(InvalidTransitionError):
            await lifecycle.acknowledge(db, "alert-1", "analyst_1")

    @pytest.mark.asyncio
    async def test_unknown_alert(self, db):
        with pytest.raises(NotFoundError):
            await AlertLifecycle().acknowledge(db, "missing", "analyst_1")


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_removes_and_notifies(self, db, hub, cache):
        await _seed_alert(db)
        lifecycle = AlertLifecycle(hub=hub, cache=cache)

        await lifecycle.delete(db, "alert-1", "admin")

        hub.alert_deleted.assert_called_once_with("alert-1")
        cache.invalidate.assert_awaited_once_with(*ALERT_CACHE_PATTERNS)
        with pytest.raises(NotFoundError):
            await lifecycle.get(db, "alert-1")
