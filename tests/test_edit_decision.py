"""Tests for edit path selection (Path A / B / C)."""

from __future__ import annotations

import uuid
from decimal import Decimal

from src.modules.lookups.constants import (
    ORDER_ACCEPTED,
    ORDER_ISSUED,
    ORDER_RECEIVED,
    ORDER_STATUS,
)
from src.modules.order.decision import EditPath, decide_edit_path, has_change_control
from src.modules.order.schemas import OrderLineItemInput, OrderLineItemsInput
from tests.factories import FakeStatusResolver

ACCEPTED = FakeStatusResolver.id(ORDER_ACCEPTED, ORDER_STATUS)
RECEIVED = FakeStatusResolver.id(ORDER_RECEIVED, ORDER_STATUS)
ISSUED = FakeStatusResolver.id(ORDER_ISSUED, ORDER_STATUS)
CONTROLLED = {ACCEPTED, RECEIVED}


def _add_one() -> OrderLineItemsInput:
    return OrderLineItemsInput(
        add_line_items=[OrderLineItemInput(description="Pallet", quantity=Decimal("4"))]
    )


class TestHasChangeControl:
    def test_requires_enabled_preference(self) -> None:
        assert not has_change_control(False, ACCEPTED, CONTROLLED, {"incoterms": "CIF"}, None)

    def test_requires_controlled_status(self) -> None:
        assert not has_change_control(True, ISSUED, CONTROLLED, {"incoterms": "CIF"}, None)

    def test_requires_controlled_field_or_line_items(self) -> None:
        assert not has_change_control(True, ACCEPTED, CONTROLLED, {}, None)
        assert not has_change_control(True, ACCEPTED, CONTROLLED, {}, OrderLineItemsInput())

    def test_controlled_field_in_received_status(self) -> None:
        assert has_change_control(True, RECEIVED, CONTROLLED, {"incoterms": "CIF"}, None)

    def test_line_items_alone_activate_change_control(self) -> None:
        assert has_change_control(True, ACCEPTED, CONTROLLED, {}, _add_one())


class TestDecideEditPath:
    def test_non_controlled_status_always_direct(self) -> None:
        active = has_change_control(True, ISSUED, CONTROLLED, {"incoterms": "CIF"}, None)
        decision = decide_edit_path(active, {"incoterms": "CIF"}, {}, {}, None)

        assert decision.path == EditPath.DIRECT_ONLY
        assert not decision.creates_change_request
        assert decision.direct_fields == {"incoterms": "CIF"}

    def test_only_controlled_field_is_change_control_only(self) -> None:
        decision = decide_edit_path(True, {"incoterms": "CIF"}, {}, {}, None)

        assert decision.path == EditPath.CHANGE_CONTROL_ONLY
        assert decision.direct_fields == {}
        assert decision.change_request_fields == {"incoterms": "CIF"}

    def test_controlled_plus_excluded_field_is_path_c(self) -> None:
        decision = decide_edit_path(
            True, {"incoterms": "CIF"}, {"special_instructions": "Call ahead"}, {}, None
        )

        assert decision.path == EditPath.CHANGE_CONTROL_PLUS_DIRECT
        assert decision.direct_fields == {"special_instructions": "Call ahead"}
        assert decision.change_request_fields == {"incoterms": "CIF"}

    def test_header_fields_are_applied_directly_alongside_change_request(self) -> None:
        forwarder_id = uuid.uuid4()
        decision = decide_edit_path(
            True, {"incoterms": "CIF"}, {}, {"forwarder_id": forwarder_id}, None
        )

        assert decision.path == EditPath.CHANGE_CONTROL_PLUS_DIRECT
        assert decision.direct_fields == {"forwarder_id": forwarder_id}

    def test_line_items_go_to_change_request_under_change_control(self) -> None:
        line_items = _add_one()
        decision = decide_edit_path(True, {}, {}, {}, line_items)

        assert decision.path == EditPath.CHANGE_CONTROL_ONLY
        assert decision.line_items is line_items
        assert not decision.applies_line_items_directly

    def test_direct_path_applies_everything(self) -> None:
        line_items = _add_one()
        decision = decide_edit_path(
            False, {"incoterms": "CIF"}, {"hot_flag": True}, {"agent_id": None}, line_items
        )

        assert decision.path == EditPath.DIRECT_ONLY
        assert decision.direct_fields == {"incoterms": "CIF", "hot_flag": True, "agent_id": None}
        assert decision.applies_line_items_directly
