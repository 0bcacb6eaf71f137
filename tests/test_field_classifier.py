"""Tests for the field classifier: editability checks and change-control partition."""

from __future__ import annotations

import uuid
from datetime import date
from types import SimpleNamespace

import pytest

from src.exceptions import ForbiddenException
from src.modules.order.field_classifier import (
    check_fields_editable,
    classify_shipping_fields,
    drop_unchanged_fields,
    excluded_from_change_control,
    is_empty_value,
)
from src.modules.order.preferences import (
    PurchaseOrderPreferences,
    get_field_config,
    parse_buyer_preferences,
)


class TestCheckFieldsEditable:
    def test_editable_fields_pass(self) -> None:
        configs = {
            "incoterms": {"edit": {"editable": True}},
            "cargo_ready_date": {"editable": True},
        }
        check_fields_editable(
            {"incoterms": "CIF", "cargo_ready_date": date(2026, 12, 1)}, configs
        )

    def test_unconfigured_field_is_rejected_by_name(self) -> None:
        with pytest.raises(ForbiddenException, match="edit field incoterms"):
            check_fields_editable({"incoterms": "CIF"}, {})

    def test_field_marked_not_editable_is_rejected(self) -> None:
        configs = {"hot_flag": {"edit": {"editable": False}, "create": {"editable": True}}}
        with pytest.raises(ForbiddenException, match="hot_flag"):
            check_fields_editable({"hot_flag": True}, configs)

    def test_empty_values_are_not_checked(self) -> None:
        check_fields_editable({"special_instructions": "", "line_items": {}}, {})

    @pytest.mark.parametrize("key", ["incoterms", "destination_id", "forwarder_id"])
    def test_clearing_a_field_needs_edit_permission(self, key) -> None:
        with pytest.raises(ForbiddenException, match=f"edit field {key}"):
            check_fields_editable({key: None}, {})

    def test_unknown_keys_are_not_checked(self) -> None:
        check_fields_editable({"order_change_request_note": "please"}, {})

    def test_integration_bypasses_field_checks(self) -> None:
        check_fields_editable({"incoterms": "CIF", "supplier_id": uuid.uuid4()}, {}, is_integration=True)


class TestFieldConfig:
    def test_action_block_preferred(self) -> None:
        config = {"edit": {"editable": True}, "editable": False}
        assert get_field_config(config, "edit") == {"editable": True}

    def test_flat_config_applies_to_every_action(self) -> None:
        assert get_field_config({"editable": True}, "edit") == {"editable": True}

    def test_missing_config(self) -> None:
        assert get_field_config(None, "edit") is None

    def test_malformed_preferences_fall_back_to_defaults(self) -> None:
        prefs = parse_buyer_preferences({"purchase_order": {"enable_change_control": "maybe"}})
        assert prefs.purchase_order.enable_change_control is False


class TestChangeControlPartition:
    def test_default_exclusions(self) -> None:
        assert excluded_from_change_control(None) == (
            "cargo_ready_date",
            "hot_flag",
            "special_instructions",
        )
        assert excluded_from_change_control(PurchaseOrderPreferences()) == (
            "cargo_ready_date",
            "hot_flag",
            "special_instructions",
        )

    def test_configured_exclusions_replace_defaults(self) -> None:
        prefs = PurchaseOrderPreferences(exclude_change_control=["incoterms"])
        assert excluded_from_change_control(prefs) == ("incoterms",)

    def test_empty_configured_exclusions_control_everything(self) -> None:
        prefs = PurchaseOrderPreferences(exclude_change_control=[])
        partition = classify_shipping_fields(
            {"hot_flag": True}, excluded_from_change_control(prefs)
        )
        assert partition.change_controlled == {"hot_flag": True}
        assert partition.direct == {}

    def test_classify_splits_fields(self) -> None:
        partition = classify_shipping_fields(
            {"incoterms": "CIF", "special_instructions": "Fragile", "hot_flag": True},
            excluded_from_change_control(None),
        )
        assert partition.change_controlled == {"incoterms": "CIF"}
        assert partition.direct == {"special_instructions": "Fragile", "hot_flag": True}


class TestDropUnchangedFields:
    def test_drops_equal_values(self) -> None:
        current = SimpleNamespace(incoterms="FOB", hot_flag=False, cargo_ready_date=date(2026, 1, 5))
        fields = {"incoterms": "FOB", "hot_flag": True, "cargo_ready_date": date(2026, 1, 5)}
        assert drop_unchanged_fields(fields, current) == {"hot_flag": True}

    def test_keeps_fields_the_object_does_not_have(self) -> None:
        assert drop_unchanged_fields({"new_field": 1}, SimpleNamespace()) == {"new_field": 1}


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, False), ("", True), ({}, True), ([], True), (False, False), (0, False), ("x", False)],
)
def test_is_empty_value(value, expected) -> None:
    assert is_empty_value(value) is expected
