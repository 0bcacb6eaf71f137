"""Line-Item Reconciler: add/edit/remove/replace instructions against an order.

The same instructions either mutate live line items (direct path) or become
change-request delta records plus a human-readable description (change-control
path). Direct mutations report a tagged ``MutationResult`` per statement so a
zero-row write is always attributed to the right entity kind.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from pydantic_core import to_jsonable_python
from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.exceptions import PersistenceException, ValidationException
from src.models.enums import ChangeRequestLineItemAction
from src.models.order import Order
from src.models.order_line_item import OrderLineItem
from src.models.order_line_item_note import OrderLineItemNote
from src.modules.order.loaders import OrderLoaders
from src.modules.order.schemas import (
    EditOrderLineItemInput,
    OrderLineItemInput,
    OrderLineItemsInput,
)

logger = logging.getLogger(__name__)

_LINE_ITEM_COLUMNS = ("item_number", "description", "quantity", "unit_of_measure", "unit_price")


class MutationKind(str, enum.Enum):
    LINE_ITEM = "line item"
    NOTE = "note"


class MutationOperation(str, enum.Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class MutationResult:
    kind: MutationKind
    operation: MutationOperation
    ids: tuple[uuid.UUID, ...]
    expected: int = 1

    @property
    def affected(self) -> int:
        return len(self.ids)

    @property
    def succeeded(self) -> bool:
        return self.affected >= self.expected


@dataclass
class ChangeRequestDraft:
    description: str
    deltas: list[dict[str, Any]] = field(default_factory=list)


def ensure_applied(results: list[MutationResult]) -> None:
    for result in results:
        if not result.succeeded:
            raise PersistenceException(
                f"Failed to {result.operation.value} {result.kind.value}",
                entity=result.kind.value,
                details=[{
                    "entity": result.kind.value,
                    "operation": result.operation.value,
                    "expected": result.expected,
                    "affected": result.affected,
                }],
            )


def validate_line_item_instructions(line_items: OrderLineItemsInput | None) -> None:
    """Reject conflicting instruction shapes before anything is written."""
    if line_items is None:
        return
    if line_items.replace_line_items is not None and (
        line_items.add_line_items or line_items.edit_line_items or line_items.remove_line_items
    ):
        raise ValidationException("You cannot replace and add/edit/remove line items.")
    if line_items.edit_line_items and line_items.remove_line_items:
        removed = set(line_items.remove_line_items)
        for item in line_items.edit_line_items:
            if item.line_item_id in removed:
                raise ValidationException(
                    "You cannot edit and remove the same line item.",
                    details=[{"line_item_id": str(item.line_item_id)}],
                )


def _owned_line_item(order: Order, line_item_id: uuid.UUID) -> OrderLineItem:
    for line_item in order.line_items:
        if line_item.id == line_item_id:
            return line_item
    raise ValidationException(
        f"Line item {line_item_id} does not belong to order {order.id}",
        details=[{"line_item_id": str(line_item_id)}],
    )


def _snapshot(line_item: OrderLineItem, columns: tuple[str, ...] = _LINE_ITEM_COLUMNS) -> dict:
    return to_jsonable_python({col: getattr(line_item, col) for col in columns})


def _label(name: str) -> str:
    return name.replace("_", " ")


class LineItemReconciler:
    def __init__(self, db: AsyncSession, loaders: OrderLoaders):
        self.db = db
        self.loaders = loaders

    # ------------------------------------------------------------------
    # Direct path
    # ------------------------------------------------------------------

    async def apply(
        self,
        order: Order,
        line_items: OrderLineItemsInput | None,
        org_id: uuid.UUID,
        author_id: uuid.UUID | None = None,
    ) -> list[MutationResult]:
        """Execute each instruction category and verify every write landed."""
        if line_items is None or line_items.is_empty():
            return []
        validate_line_item_instructions(line_items)

        results: list[MutationResult] = []
        touched: set[uuid.UUID] = set()
        if line_items.replace_line_items is not None:
            touched.update(li.id for li in order.line_items)
            results.extend(
                await self._replace(order, line_items.replace_line_items, org_id, author_id)
            )
        else:
            if line_items.add_line_items:
                results.extend(
                    await self._add(order, line_items.add_line_items, org_id, author_id)
                )
            if line_items.edit_line_items:
                touched.update(item.line_item_id for item in line_items.edit_line_items)
                results.extend(
                    await self._edit(order, line_items.edit_line_items, org_id, author_id)
                )
            if line_items.remove_line_items:
                touched.update(line_items.remove_line_items)
                results.append(await self._remove(order, line_items.remove_line_items))

        for line_item_id in touched:
            self.loaders.line_items.invalidate(line_item_id)
        self.loaders.orders.invalidate(order.id)

        ensure_applied(results)
        logger.info(
            "Applied %d line-item mutation(s) to order %s", len(results), order.id
        )
        return results

    async def _next_line_number(self, order_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.coalesce(func.max(OrderLineItem.line_number), 0)).where(
                OrderLineItem.order_id == order_id
            )
        )
        return (result.scalar() or 0) + 1

    async def _add(
        self,
        order: Order,
        items: list[OrderLineItemInput],
        org_id: uuid.UUID,
        author_id: uuid.UUID | None,
        first_line_number: int | None = None,
    ) -> list[MutationResult]:
        if first_line_number is None:
            first_line_number = await self._next_line_number(order.id)

        rows = []
        notes: list[tuple[uuid.UUID, str]] = []
        for offset, item in enumerate(items):
            line_item_id = uuid.uuid4()
            rows.append({
                "id": line_item_id,
                "order_id": order.id,
                "line_number": first_line_number + offset,
                "supplier_id": order.supplier_id,
                "last_updated_by_org_id": org_id,
                **item.model_dump(exclude={"note"}),
            })
            if item.note:
                notes.append((line_item_id, item.note))

        result = await self.db.execute(
            insert(OrderLineItem).values(rows).returning(OrderLineItem.id)
        )
        results = [
            MutationResult(
                MutationKind.LINE_ITEM,
                MutationOperation.INSERT,
                tuple(result.scalars().all()),
                expected=len(rows),
            )
        ]
        if notes:
            results.append(await self._add_notes(notes, author_id))
        return results

    async def _add_notes(
        self, notes: list[tuple[uuid.UUID, str]], author_id: uuid.UUID | None
    ) -> MutationResult:
        result = await self.db.execute(
            insert(OrderLineItemNote)
            .values([
                {"order_line_item_id": line_item_id, "author_id": author_id, "note": note}
                for line_item_id, note in notes
            ])
            .returning(OrderLineItemNote.id)
        )
        return MutationResult(
            MutationKind.NOTE,
            MutationOperation.INSERT,
            tuple(result.scalars().all()),
            expected=len(notes),
        )

    async def _edit(
        self,
        order: Order,
        items: list[EditOrderLineItemInput],
        org_id: uuid.UUID,
        author_id: uuid.UUID | None,
    ) -> list[MutationResult]:
        results: list[MutationResult] = []
        notes: list[tuple[uuid.UUID, str]] = []
        for item in items:
            changes = item.changes()
            if changes:
                result = await self.db.execute(
                    update(OrderLineItem)
                    .where(
                        OrderLineItem.id == item.line_item_id,
                        OrderLineItem.order_id == order.id,
                    )
                    .values(**changes, last_updated_by_org_id=org_id)
                    .returning(OrderLineItem.id)
                )
                results.append(
                    MutationResult(
                        MutationKind.LINE_ITEM,
                        MutationOperation.UPDATE,
                        tuple(result.scalars().all()),
                    )
                )
            if item.note:
                notes.append((item.line_item_id, item.note))
        if notes:
            results.append(await self._add_notes(notes, author_id))
        return results

    async def _remove(self, order: Order, line_item_ids: list[uuid.UUID]) -> MutationResult:
        unique_ids = set(line_item_ids)
        result = await self.db.execute(
            delete(OrderLineItem)
            .where(
                OrderLineItem.id.in_(unique_ids),
                OrderLineItem.order_id == order.id,
            )
            .returning(OrderLineItem.id)
        )
        return MutationResult(
            MutationKind.LINE_ITEM,
            MutationOperation.DELETE,
            tuple(result.scalars().all()),
            expected=len(unique_ids),
        )

    async def _replace(
        self,
        order: Order,
        items: list[OrderLineItemInput],
        org_id: uuid.UUID,
        author_id: uuid.UUID | None,
    ) -> list[MutationResult]:
        result = await self.db.execute(
            delete(OrderLineItem)
            .where(OrderLineItem.order_id == order.id)
            .returning(OrderLineItem.id)
        )
        # An order may legitimately have no lines to replace
        results = [
            MutationResult(
                MutationKind.LINE_ITEM,
                MutationOperation.DELETE,
                tuple(result.scalars().all()),
                expected=0,
            )
        ]
        if items:
            results.extend(
                await self._add(order, items, org_id, author_id, first_line_number=1)
            )
        return results

    # ------------------------------------------------------------------
    # Change-control path
    # ------------------------------------------------------------------

    def build_change_request_deltas(
        self,
        order: Order,
        line_items: OrderLineItemsInput | None,
        shipping_fields: dict[str, Any],
    ) -> ChangeRequestDraft:
        """Describe the proposed edits without touching live line items."""
        validate_line_item_instructions(line_items)
        draft = ChangeRequestDraft(description="")
        lines: list[str] = []

        if line_items is not None:
            if line_items.replace_line_items is not None:
                for item in line_items.replace_line_items:
                    draft.deltas.append({
                        "action": ChangeRequestLineItemAction.REPLACE,
                        "proposed_value": to_jsonable_python(item.model_dump()),
                    })
                lines.append(
                    f"Replace {len(order.line_items)} line item(s) with "
                    f"{len(line_items.replace_line_items)} new line item(s)"
                )
            for item in line_items.add_line_items or []:
                draft.deltas.append({
                    "action": ChangeRequestLineItemAction.ADD,
                    "proposed_value": to_jsonable_python(item.model_dump()),
                })
                lines.append(f"Add line item: {item.description} (quantity {item.quantity})")
            for item in line_items.edit_line_items or []:
                current = _owned_line_item(order, item.line_item_id)
                changes = item.changes()
                proposed = dict(changes)
                if item.note:
                    proposed["note"] = item.note
                draft.deltas.append({
                    "action": ChangeRequestLineItemAction.EDIT,
                    "order_line_item_id": current.id,
                    "previous_value": _snapshot(current, tuple(changes)),
                    "proposed_value": to_jsonable_python(proposed),
                })
                summary = ", ".join(
                    f"{_label(key)} {getattr(current, key)} -> {value}"
                    for key, value in changes.items()
                ) or "note added"
                lines.append(f"Edit line item {current.line_number}: {summary}")
            for line_item_id in line_items.remove_line_items or []:
                current = _owned_line_item(order, line_item_id)
                draft.deltas.append({
                    "action": ChangeRequestLineItemAction.REMOVE,
                    "order_line_item_id": current.id,
                    "previous_value": _snapshot(current),
                })
                lines.append(f"Remove line item {current.line_number}: {current.description}")

        for key, value in shipping_fields.items():
            previous = getattr(order, key, None)
            draft.deltas.append({
                "action": ChangeRequestLineItemAction.SHIPPING_INFO,
                "field_name": key,
                "previous_value": to_jsonable_python(previous),
                "proposed_value": to_jsonable_python(value),
            })
            lines.append(f"Change {_label(key)}: {previous if previous is not None else '(none)'} -> {value}")

        draft.description = "\n".join(lines)
        return draft


def drop_unchanged_line_item_edits(
    order: Order, line_items: OrderLineItemsInput | None
) -> OrderLineItemsInput | None:
    """Drop edit instructions that neither change a column nor carry a note."""
    if line_items is None or not line_items.edit_line_items:
        return line_items
    current = {li.id: li for li in order.line_items}
    kept = []
    for item in line_items.edit_line_items:
        existing = current.get(item.line_item_id)
        if existing is None or item.note:
            kept.append(item)
            continue
        if any(getattr(existing, key) != value for key, value in item.changes().items()):
            kept.append(item)
    return line_items.model_copy(update={"edit_line_items": kept or None})
