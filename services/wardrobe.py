"""Wardrobe item operations."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable, List, Optional

from exchange_app.logging_config import get_logger, log_event
from logic.access import resolve_authorized_entity
from logic.errors import ForbiddenError, QuotaExceededError, ValidationFailure
from logic.limits import can_perform_action, has_reached_limit, limits_for, upgrade_message
from logic.pseudonym import actor_pseudonym
from logic.validation import WardrobeFilters, WardrobeItemCreate, WardrobeItemUpdate
from models.user import User
from models.wardrobe_item import HistoryType, ItemHistoryEntry, ItemImage, ItemStatus, WardrobeItem
from tools.database import utcnow
from tools.wardrobe_store import SQLiteWardrobeStore

LOGGER = get_logger(__name__)


def is_listed(item: WardrobeItem) -> bool:
    """Items other members may look at."""

    return item.status in (ItemStatus.AVAILABLE, ItemStatus.ON_LOAN) and (
        item.available_for_swap or item.available_for_sale
    )


def can_view_item(item: WardrobeItem, user_id: str) -> bool:
    if item.status is ItemStatus.DELETED:
        return False
    return item.owner_id == user_id or is_listed(item)


class WardrobeService:
    def __init__(
        self,
        wardrobe_store: SQLiteWardrobeStore,
        pseudonym_secret: str,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.wardrobe_store = wardrobe_store
        self.pseudonym_secret = pseudonym_secret
        self.clock = clock

    def list_items(self, user: User, filters: WardrobeFilters) -> List[WardrobeItem]:
        return self.wardrobe_store.list_items_for_owner(user.id, filters.model_dump(exclude_none=True))

    def _check_selling(self, user: User, available_for_sale: Optional[bool]) -> None:
        if available_for_sale and not can_perform_action(user.membership_tier, "can_sell_items"):
            raise ForbiddenError(
                upgrade_message(user.membership_tier, "can_sell_items"), upgrade_required=True
            )

    def create_item(self, user: User, payload: WardrobeItemCreate) -> WardrobeItem:
        count = self.wardrobe_store.count_items_for_owner(user.id)
        if has_reached_limit(user.membership_tier, "wardrobe_items", count):
            raise QuotaExceededError(
                upgrade_message(user.membership_tier, "max_wardrobe_items"),
                limit=limits_for(user.membership_tier).max_wardrobe_items,
            )
        self._check_selling(user, payload.available_for_sale)

        now = self.clock()
        data = payload.model_dump()
        image_urls = data.pop("images")
        item = WardrobeItem(
            id=uuid.uuid4().hex,
            owner_id=user.id,
            original_uploader_id=user.id,
            created_at=now,
            updated_at=now,
            images=[
                ItemImage(url=url, is_primary=position == 0, position=position)
                for position, url in enumerate(image_urls)
            ],
            **data,
        )
        upload = ItemHistoryEntry(
            id=uuid.uuid4().hex,
            item_id=item.id,
            type=HistoryType.UPLOAD,
            actor_ref=actor_pseudonym(user.id, self.pseudonym_secret),
            created_at=now,
            notes="Item added to wardrobe",
        )
        created = self.wardrobe_store.create_item(item, upload)
        log_event(LOGGER, logging.INFO, "wardrobe_item_created", user_id=user.id, item_id=item.id)
        return created

    def get_item(self, user: User, item_id: str) -> WardrobeItem:
        item = self.wardrobe_store.get_item(item_id)
        return resolve_authorized_entity(
            item, can_view=lambda found: can_view_item(found, user.id)
        ).unwrap("Item")

    def _owned_item(self, user: User, item_id: str) -> WardrobeItem:
        item = self.wardrobe_store.get_item(item_id)
        return resolve_authorized_entity(
            item,
            can_view=lambda found: can_view_item(found, user.id),
            can_act=lambda found: found.owner_id == user.id,
        ).unwrap("Item")

    def update_item(self, user: User, item_id: str, payload: WardrobeItemUpdate) -> WardrobeItem:
        item = self._owned_item(user, item_id)
        fields = payload.model_dump(exclude_unset=True)
        images = fields.pop("images", None)
        self._check_selling(user, fields.get("available_for_sale"))
        for_sale = fields.get("available_for_sale", item.available_for_sale)
        price = fields.get("sale_price_cents", item.sale_price_cents)
        if for_sale and price is None:
            raise ValidationFailure("sale_price_cents is required when available_for_sale is set")
        updated = self.wardrobe_store.update_item(item.id, fields, self.clock(), images)
        log_event(LOGGER, logging.INFO, "wardrobe_item_updated", user_id=user.id, item_id=item.id)
        return updated

    def delete_item(self, user: User, item_id: str) -> None:
        item = self._owned_item(user, item_id)
        self.wardrobe_store.soft_delete_item(item.id, self.clock())
        log_event(LOGGER, logging.INFO, "wardrobe_item_deleted", user_id=user.id, item_id=item.id)


__all__ = ["WardrobeService", "can_view_item", "is_listed"]
