"""Tests for phase-by-phase commit and failure reporting of OrderEditSaga."""

import uuid

import pytest

from src.exceptions import PersistenceException
from src.modules.order.saga import OrderEditSaga
from tests.factories import make_session


@pytest.mark.asyncio
async def test_each_phase_commits_its_own_session() -> None:
    relational, messaging = make_session(), make_session()
    saga = OrderEditSaga("edit_order", uuid.uuid4())

    async with saga.phase("order_fields", relational):
        pass
    async with saga.phase("message_thread", messaging):
        pass

    relational.commit.assert_awaited_once()
    messaging.commit.assert_awaited_once()
    assert saga.committed == ["order_fields", "message_thread"]


@pytest.mark.asyncio
async def test_failed_phase_rolls_back_and_reports_committed_phases() -> None:
    session = make_session()
    saga = OrderEditSaga("edit_order", uuid.uuid4())

    async with saga.phase("change_request", session):
        pass
    with pytest.raises(PersistenceException) as exc_info:
        async with saga.phase("line_items", session):
            raise PersistenceException("Failed to update line item", entity="line item")

    session.rollback.assert_awaited_once()
    assert session.commit.await_count == 1
    assert saga.committed == ["change_request"]
    assert exc_info.value.details == [{
        "operation": "edit_order",
        "failedPhase": "line_items",
        "committedPhases": ["change_request"],
    }]


@pytest.mark.asyncio
async def test_non_domain_errors_propagate_unchanged() -> None:
    session = make_session()
    saga = OrderEditSaga("edit_order", uuid.uuid4())

    with pytest.raises(RuntimeError, match="connection reset"):
        async with saga.phase("order_fields", session):
            raise RuntimeError("connection reset")

    session.rollback.assert_awaited_once()
    session.commit.assert_not_awaited()
    assert saga.committed == []
