"""Buyer preferences: change-control switches and header-field editability.

Preferences live as JSONB on the buyer organization::

    {
      "enable_location_auto_create": true,
      "location_auto_create_contact_list": ["<user id>", ...],
      "terms_and_conditions": "Standard terms apply.",
      "purchase_order": {
        "allow_external_creation": false,
        "enable_change_control": true,
        "exclude_change_control": ["cargo_ready_date"],
        "header_fields": {"incoterms": {"edit": {"editable": true}, "create": {"editable": true}}},
        "counterparty_header_fields": {"cargo_ready_date": {"editable": true}}
      }
    }

``header_fields`` applies to users of the buyer organization and
``counterparty_header_fields`` to everyone else on the order.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.exceptions import NotFoundException
from src.models.organization import Organization

logger = logging.getLogger(__name__)

ACTION_EDIT = "edit"
ACTION_CREATE = "create"


class PurchaseOrderPreferences(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # Only an explicit false stops counterparties from creating orders for this buyer
    allow_external_creation: bool = True
    enable_change_control: bool = False
    # None means "use the default exclusion set"
    exclude_change_control: list[str] | None = None
    header_fields: dict[str, dict[str, Any]] = Field(default_factory=dict)
    counterparty_header_fields: dict[str, dict[str, Any]] = Field(default_factory=dict)


class BuyerPreferences(BaseModel):
    model_config = ConfigDict(extra="ignore")

    enable_location_auto_create: bool = False
    location_auto_create_contact_list: list[uuid.UUID] = Field(default_factory=list)
    # Applied to new orders that arrive without their own terms
    terms_and_conditions: str | None = None
    purchase_order: PurchaseOrderPreferences = Field(default_factory=PurchaseOrderPreferences)


class EffectivePreferences(BaseModel):
    """Preferences as seen by one acting user on one buyer's order."""

    buyer: BuyerPreferences
    purchase_order: PurchaseOrderPreferences
    field_configs: dict[str, dict[str, Any]]


def get_field_config(config: dict[str, Any] | None, action: str) -> dict[str, Any] | None:
    """Return the per-action block of a field config.

    A config is either keyed by action (``{"edit": {...}, "create": {...}}``)
    or flat (``{"editable": true}``), in which case it applies to every action.
    """
    if not config:
        return None
    action_config = config.get(action)
    if isinstance(action_config, dict):
        return action_config
    return config


def parse_buyer_preferences(raw: dict[str, Any] | None) -> BuyerPreferences:
    try:
        return BuyerPreferences.model_validate(raw or {})
    except ValidationError:
        logger.warning("Ignoring malformed buyer preferences", exc_info=True)
        return BuyerPreferences()


class PreferencesService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_buyer_preferences(self, buyer_org_id: uuid.UUID) -> BuyerPreferences:
        result = await self.db.execute(
            select(Organization.preferences).where(Organization.id == buyer_org_id)
        )
        raw = result.scalar_one_or_none()
        if raw is None:
            raise NotFoundException(f"Buyer organization {buyer_org_id} not found")
        return parse_buyer_preferences(raw)

    async def get_preferences(
        self,
        user_id: uuid.UUID,
        org_id: uuid.UUID,
        buyer_org_id: uuid.UUID,
    ) -> EffectivePreferences:
        buyer = await self.get_buyer_preferences(buyer_org_id)
        po = buyer.purchase_order
        field_configs = po.header_fields if org_id == buyer_org_id else po.counterparty_header_fields
        logger.debug(
            "Resolved order preferences for user %s (org %s, buyer %s)",
            user_id,
            org_id,
            buyer_org_id,
        )
        return EffectivePreferences(buyer=buyer, purchase_order=po, field_configs=field_configs)
