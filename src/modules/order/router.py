"""Order edit / change-control API router."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.session import get_db, get_document_db, get_messaging_db
from src.modules.identity.auth import AuthenticatedUser, get_current_user
from src.modules.lookups.cache import lookup_cache
from src.modules.order.schemas import (
    CancellationEligibilityResponse,
    ChangeRequestResponse,
    ChangeReviewDecisionInput,
    CreateOrderInput,
    EditOrderInput,
    EditOrderParticipantsInput,
    EditOrderStatusInput,
    OrderParticipantResponse,
    OrderResponse,
)
from src.modules.order.service import OrderEditService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_order_edit_service(
    db: AsyncSession = Depends(get_db),
    docs: AsyncSession = Depends(get_document_db),
    messages: AsyncSession = Depends(get_messaging_db),
) -> OrderEditService:
    return OrderEditService(db, docs, messages, cache=lookup_cache)


# ---------------------------------------------------------------------------
# Order
# ---------------------------------------------------------------------------


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    body: CreateOrderInput,
    user: AuthenticatedUser = Depends(get_current_user),
    svc: OrderEditService = Depends(get_order_edit_service),
):
    """Issue an order with its default participants and message thread."""
    order = await svc.create_order(body, user)
    return OrderResponse.model_validate(order)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    svc: OrderEditService = Depends(get_order_edit_service),
):
    order = await svc.get_order(order_id, user)
    return OrderResponse.model_validate(order)


@router.patch("/{order_id}", response_model=OrderResponse)
async def edit_order(
    order_id: uuid.UUID,
    body: EditOrderInput,
    user: AuthenticatedUser = Depends(get_current_user),
    svc: OrderEditService = Depends(get_order_edit_service),
):
    """Edit an order; change-controlled edits become a change request."""
    order = await svc.edit_order(order_id, body, user)
    return OrderResponse.model_validate(order)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def edit_order_status(
    order_id: uuid.UUID,
    body: EditOrderStatusInput,
    user: AuthenticatedUser = Depends(get_current_user),
    svc: OrderEditService = Depends(get_order_edit_service),
):
    order = await svc.edit_order_status(order_id, body.order_status_id, user)
    return OrderResponse.model_validate(order)


@router.get("/{order_id}/cancellation-eligibility", response_model=CancellationEligibilityResponse)
async def get_cancellation_eligibility(
    order_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    svc: OrderEditService = Depends(get_order_edit_service),
):
    can_be_cancelled = await svc.can_order_be_cancelled(order_id, user)
    return CancellationEligibilityResponse(order_id=order_id, can_be_cancelled=can_be_cancelled)


# ---------------------------------------------------------------------------
# Participants
# ---------------------------------------------------------------------------


@router.put("/{order_id}/participants", response_model=list[OrderParticipantResponse])
async def edit_order_participants(
    order_id: uuid.UUID,
    body: EditOrderParticipantsInput,
    user: AuthenticatedUser = Depends(get_current_user),
    svc: OrderEditService = Depends(get_order_edit_service),
):
    """Replace the participant list. An empty list removes every participant."""
    rows = await svc.participants.edit_order_participants(order_id, body.participants, user)
    return [OrderParticipantResponse.model_validate(p) for p in rows]


@router.post(
    "/{order_id}/participants/defaults",
    response_model=list[OrderParticipantResponse],
    status_code=201,
)
async def seed_default_participants(
    order_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    svc: OrderEditService = Depends(get_order_edit_service),
):
    rows = await svc.participants.seed_default_participants(order_id, user)
    return [OrderParticipantResponse.model_validate(p) for p in rows]


# ---------------------------------------------------------------------------
# Change requests
# ---------------------------------------------------------------------------


@router.get("/{order_id}/change-requests", response_model=list[ChangeRequestResponse])
async def list_change_requests(
    order_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    svc: OrderEditService = Depends(get_order_edit_service),
):
    await svc.get_order(order_id, user)
    rows = await svc.change_control.list_change_requests(order_id)
    return [ChangeRequestResponse.model_validate(cr) for cr in rows]


@router.post(
    "/{order_id}/change-requests/{change_request_id}/reviews",
    response_model=ChangeRequestResponse,
)
async def review_change_request(
    order_id: uuid.UUID,
    change_request_id: uuid.UUID,
    body: ChangeReviewDecisionInput,
    user: AuthenticatedUser = Depends(get_current_user),
    svc: OrderEditService = Depends(get_order_edit_service),
):
    """Approve or reject a change request as one of its required approvers."""
    await svc.get_order(order_id, user)
    change_request = await svc.change_control.review_change_request(
        order_id, change_request_id, user, body.decision, body.comment
    )
    return ChangeRequestResponse.model_validate(change_request)
