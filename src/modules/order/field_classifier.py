"""Field Classifier: field editability and the change-control partition."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from src.exceptions import ForbiddenException
from src.modules.order.constants import DEFAULT_EXCLUDED_FROM_CHANGE_CONTROL, EDITABLE_ORDER_KEYS
from src.modules.order.preferences import ACTION_EDIT, PurchaseOrderPreferences, get_field_config


@dataclass
class ShippingFieldPartition:
    change_controlled: dict[str, Any] = field(default_factory=dict)
    direct: dict[str, Any] = field(default_factory=dict)


def is_empty_value(value: Any) -> bool:
    """Clients may send empty objects for keys they have no values for.

    ``None`` is a value: sending it clears the field, so it is checked like any other.
    """
    if isinstance(value, (str, dict, list, tuple, set)):
        return len(value) == 0
    return False


def check_fields_editable(
    edit_fields: Mapping[str, Any],
    field_configs: Mapping[str, dict[str, Any]],
    is_integration: bool = False,
    action: str = ACTION_EDIT,
) -> None:
    """Raise ForbiddenException naming the first field the caller may not set for ``action``.

    Integration identities bypass field-level checks.
    """
    if is_integration:
        return
    for key, value in edit_fields.items():
        if key not in EDITABLE_ORDER_KEYS or is_empty_value(value):
            continue
        config = get_field_config(field_configs.get(key), action)
        if not (config or {}).get("editable"):
            raise ForbiddenException(
                f"User does not have permission to {action} field {key}",
                details=[{"field": key}],
            )


def excluded_from_change_control(po_prefs: PurchaseOrderPreferences | None) -> tuple[str, ...]:
    if po_prefs is None or po_prefs.exclude_change_control is None:
        return DEFAULT_EXCLUDED_FROM_CHANGE_CONTROL
    return tuple(po_prefs.exclude_change_control)


def classify_shipping_fields(
    shipping_fields: Mapping[str, Any],
    excluded: Iterable[str],
) -> ShippingFieldPartition:
    excluded = set(excluded)
    partition = ShippingFieldPartition()
    for key, value in shipping_fields.items():
        if key in excluded:
            partition.direct[key] = value
        else:
            partition.change_controlled[key] = value
    return partition


def drop_unchanged_fields(fields: Mapping[str, Any], current: Any) -> dict[str, Any]:
    """Keep only the fields whose proposed value differs from ``current``'s attribute."""
    return {
        key: value
        for key, value in fields.items()
        if not hasattr(current, key) or getattr(current, key) != value
    }
