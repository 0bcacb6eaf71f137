"""Pydantic v2 schemas for the order edit / change-control API."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.models.enums import ChangeRequestLineItemAction

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ExtraDataInput(BaseModel):
    key: str = Field(..., min_length=1, max_length=100)
    value: Any = None


class LocationInput(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: str | None = Field(None, max_length=20)
    address: str | None = Field(None, max_length=500)
    city: str | None = Field(None, max_length=100)
    country_code: str | None = Field(None, min_length=2, max_length=2)


class OrderLineItemInput(BaseModel):
    item_number: str | None = Field(None, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal = Field(..., gt=0)
    unit_of_measure: str | None = Field(None, max_length=20)
    unit_price: Decimal | None = Field(None, ge=0)
    note: str | None = None


class EditOrderLineItemInput(BaseModel):
    line_item_id: uuid.UUID
    item_number: str | None = Field(None, max_length=100)
    description: str | None = Field(None, min_length=1, max_length=500)
    quantity: Decimal | None = Field(None, gt=0)
    unit_of_measure: str | None = Field(None, max_length=20)
    unit_price: Decimal | None = Field(None, ge=0)
    note: str | None = None

    def changes(self) -> dict[str, Any]:
        """Line-item column values explicitly sent by the client."""
        return self.model_dump(exclude_unset=True, exclude={"line_item_id", "note"})


class OrderLineItemsInput(BaseModel):
    add_line_items: list[OrderLineItemInput] | None = None
    edit_line_items: list[EditOrderLineItemInput] | None = None
    remove_line_items: list[uuid.UUID] | None = None
    replace_line_items: list[OrderLineItemInput] | None = None

    def is_empty(self) -> bool:
        return not any((
            self.add_line_items,
            self.edit_line_items,
            self.remove_line_items,
            self.replace_line_items is not None,
        ))


class OrderShippingInformationInput(BaseModel):
    purchase_order_number: str | None = Field(None, max_length=50)
    destination_id: uuid.UUID | None = None
    origin_id: uuid.UUID | None = None
    incoterms: str | None = Field(None, max_length=10)
    cargo_ready_date: date | None = None
    requested_delivery_date: date | None = None
    special_instructions: str | None = None
    hot_flag: bool | None = None
    terms_and_conditions: str | None = None
    extra_data: list[ExtraDataInput] | None = None


class EditOrderInput(BaseModel):
    shipping_information: OrderShippingInformationInput | None = None
    ship_to_location: LocationInput | None = None
    line_items: OrderLineItemsInput | None = None
    order_status_id: uuid.UUID | None = None
    supplier_id: uuid.UUID | None = None
    forwarder_id: uuid.UUID | None = None
    consignee_id: uuid.UUID | None = None
    agent_id: uuid.UUID | None = None
    broker_id: uuid.UUID | None = None
    trucker_id: uuid.UUID | None = None
    order_change_request_note: str | None = Field(None, max_length=2000)

    @field_validator("supplier_id")
    @classmethod
    def _supplier_cannot_be_cleared(cls, value: uuid.UUID | None) -> uuid.UUID | None:
        if value is None:
            raise ValueError("An order must keep a supplier")
        return value

    def header_fields(self) -> dict[str, Any]:
        """Top-level order fields explicitly sent (counterparty references)."""
        return self.model_dump(
            exclude_unset=True,
            exclude={
                "shipping_information",
                "ship_to_location",
                "line_items",
                "order_status_id",
                "order_change_request_note",
            },
        )

    def shipping_fields(self) -> dict[str, Any]:
        """Shipping fields explicitly sent, without ``extra_data``."""
        if self.shipping_information is None:
            return {}
        return self.shipping_information.model_dump(
            exclude_unset=True, exclude={"extra_data"}
        )

    def extra_data(self) -> list[ExtraDataInput] | None:
        if self.shipping_information is None:
            return None
        return self.shipping_information.extra_data


class CreateOrderInput(BaseModel):
    buyer_id: uuid.UUID
    supplier_id: uuid.UUID
    forwarder_id: uuid.UUID | None = None
    consignee_id: uuid.UUID | None = None
    agent_id: uuid.UUID | None = None
    broker_id: uuid.UUID | None = None
    trucker_id: uuid.UUID | None = None
    shipping_information: OrderShippingInformationInput = Field(
        default_factory=OrderShippingInformationInput
    )
    ship_to_location: LocationInput | None = None
    line_items: list[OrderLineItemInput] | None = None

    def header_fields(self) -> dict[str, Any]:
        """Counterparty references other than the buyer, as sent."""
        return self.model_dump(
            exclude_unset=True,
            exclude={"buyer_id", "shipping_information", "ship_to_location", "line_items"},
        )

    def shipping_fields(self) -> dict[str, Any]:
        return self.shipping_information.model_dump(exclude_unset=True, exclude={"extra_data"})

    def extra_data(self) -> list[ExtraDataInput] | None:
        return self.shipping_information.extra_data


class EditOrderStatusInput(BaseModel):
    order_status_id: uuid.UUID


class OrderParticipantInput(BaseModel):
    user_id: uuid.UUID
    approval_is_required: bool = False


class EditOrderParticipantsInput(BaseModel):
    participants: list[OrderParticipantInput] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_users(self) -> EditOrderParticipantsInput:
        user_ids = [p.user_id for p in self.participants]
        if len(user_ids) != len(set(user_ids)):
            raise ValueError("A user can only appear once in the participant list")
        return self


class ChangeReviewDecisionInput(BaseModel):
    decision: Literal["Approved", "Rejected"]
    comment: str | None = Field(None, max_length=2000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class OrderLineItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_id: uuid.UUID
    line_number: int
    item_number: str | None = None
    description: str
    quantity: Decimal
    unit_of_measure: str | None = None
    unit_price: Decimal | None = None
    created_at: datetime
    updated_at: datetime


class OrderParticipantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_id: uuid.UUID
    user_id: uuid.UUID
    approval_is_required: bool


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    org_id: uuid.UUID
    buyer_id: uuid.UUID
    supplier_id: uuid.UUID
    forwarder_id: uuid.UUID | None = None
    consignee_id: uuid.UUID | None = None
    agent_id: uuid.UUID | None = None
    broker_id: uuid.UUID | None = None
    trucker_id: uuid.UUID | None = None
    order_status_id: uuid.UUID
    is_ready_for_booking: bool
    purchase_order_number: str | None = None
    destination_id: uuid.UUID | None = None
    origin_id: uuid.UUID | None = None
    incoterms: str | None = None
    cargo_ready_date: date | None = None
    requested_delivery_date: date | None = None
    special_instructions: str | None = None
    hot_flag: bool = False
    terms_and_conditions: str | None = None
    extra_data: dict = Field(default_factory=dict)
    line_items: list[OrderLineItemResponse] = Field(default_factory=list)
    participants: list[OrderParticipantResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ChangeReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_change_request_id: uuid.UUID
    reviewer_id: uuid.UUID
    change_status_id: uuid.UUID
    review_date: datetime | None = None
    comment: str | None = None


class ChangeRequestLineItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    action: ChangeRequestLineItemAction
    order_line_item_id: uuid.UUID | None = None
    field_name: str | None = None
    previous_value: Any = None
    proposed_value: Any = None


class ChangeRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_id: uuid.UUID
    author_id: uuid.UUID
    change_status_id: uuid.UUID
    change_request_number: int
    title: str
    description: str
    note: str | None = None
    created_on: date
    reviews: list[ChangeReviewResponse] = Field(default_factory=list)
    line_items: list[ChangeRequestLineItemResponse] = Field(default_factory=list)


class CancellationEligibilityResponse(BaseModel):
    order_id: uuid.UUID
    can_be_cancelled: bool
