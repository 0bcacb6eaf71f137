"""Path selection for an order edit.

Computed once from plain values so the branch logic can be exercised without
any persistence.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from typing import Any

from src.modules.order.schemas import OrderLineItemsInput


class EditPath(str, enum.Enum):
    DIRECT_ONLY = "DIRECT_ONLY"  # Path A
    CHANGE_CONTROL_ONLY = "CHANGE_CONTROL_ONLY"  # Path B
    CHANGE_CONTROL_PLUS_DIRECT = "CHANGE_CONTROL_PLUS_DIRECT"  # Path C


@dataclass
class EditDecision:
    path: EditPath
    # Written straight to the order row
    direct_fields: dict[str, Any] = field(default_factory=dict)
    # Captured by the change request
    change_request_fields: dict[str, Any] = field(default_factory=dict)
    # Applied directly on Path A only; otherwise proposed in the change request
    line_items: OrderLineItemsInput | None = None

    @property
    def creates_change_request(self) -> bool:
        return self.path != EditPath.DIRECT_ONLY

    @property
    def applies_line_items_directly(self) -> bool:
        return self.path == EditPath.DIRECT_ONLY


def has_change_control(
    change_control_enabled: bool,
    order_status_id: uuid.UUID,
    change_controlled_status_ids: set[uuid.UUID],
    change_controlled_fields: dict[str, Any],
    line_items: OrderLineItemsInput | None,
) -> bool:
    has_line_items = line_items is not None and not line_items.is_empty()
    return (
        change_control_enabled
        and order_status_id in change_controlled_status_ids
        and (bool(change_controlled_fields) or has_line_items)
    )


def decide_edit_path(
    change_control_active: bool,
    change_controlled_fields: dict[str, Any],
    direct_shipping_fields: dict[str, Any],
    header_fields: dict[str, Any],
    line_items: OrderLineItemsInput | None,
) -> EditDecision:
    """Pick Path A, B or C.

    Header fields (counterparty references) are never change-controlled, so
    their presence alongside a change request makes the edit Path C.
    """
    if not change_control_active:
        return EditDecision(
            path=EditPath.DIRECT_ONLY,
            direct_fields={**header_fields, **change_controlled_fields, **direct_shipping_fields},
            line_items=line_items,
        )

    direct_fields = {**header_fields, **direct_shipping_fields}
    return EditDecision(
        path=(
            EditPath.CHANGE_CONTROL_PLUS_DIRECT
            if direct_fields
            else EditPath.CHANGE_CONTROL_ONLY
        ),
        direct_fields=direct_fields,
        change_request_fields=dict(change_controlled_fields),
        line_items=line_items,
    )
