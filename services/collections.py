"""Collection curation operations."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable, List

from exchange_app.logging_config import get_logger, log_event
from logic.access import resolve_authorized_entity
from logic.errors import NotFoundError, QuotaExceededError
from logic.limits import has_reached_limit, limits_for, upgrade_message
from logic.validation import CollectionCreate, CollectionItemAdd, CollectionUpdate
from models.collection import Collection, CollectionItem
from models.user import User
from services.wardrobe import can_view_item
from tools.collection_store import SQLiteCollectionStore
from tools.database import utcnow
from tools.wardrobe_store import SQLiteWardrobeStore

LOGGER = get_logger(__name__)


class CollectionService:
    def __init__(
        self,
        collection_store: SQLiteCollectionStore,
        wardrobe_store: SQLiteWardrobeStore,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.collection_store = collection_store
        self.wardrobe_store = wardrobe_store
        self.clock = clock

    def list_collections(self, user: User) -> List[Collection]:
        return self.collection_store.list_for_user(user.id)

    def create_collection(self, user: User, payload: CollectionCreate) -> Collection:
        if has_reached_limit(user.membership_tier, "collections", self.collection_store.count_for_user(user.id)):
            raise QuotaExceededError(
                upgrade_message(user.membership_tier, "max_collections"),
                limit=limits_for(user.membership_tier).max_collections,
            )
        collection = Collection(
            id=uuid.uuid4().hex,
            user_id=user.id,
            created_at=self.clock(),
            **payload.model_dump(),
        )
        created = self.collection_store.create_collection(collection)
        log_event(LOGGER, logging.INFO, "collection_created", user_id=user.id, collection_id=collection.id)
        return created

    def get_collection(self, user: User, collection_id: str) -> Collection:
        collection = self.collection_store.get_collection(collection_id)
        return resolve_authorized_entity(
            collection, can_view=lambda found: found.is_visible_to(user.id)
        ).unwrap("Collection")

    def _own_collection(self, user: User, collection_id: str) -> Collection:
        # Other members' collections are never revealed to mutations, public or not.
        collection = self.collection_store.get_collection(collection_id)
        return resolve_authorized_entity(
            collection, can_view=lambda found: found.user_id == user.id
        ).unwrap("Collection")

    def update_collection(self, user: User, collection_id: str, payload: CollectionUpdate) -> Collection:
        collection = self._own_collection(user, collection_id)
        return self.collection_store.update_collection(collection.id, payload.model_dump(exclude_unset=True))

    def delete_collection(self, user: User, collection_id: str) -> None:
        collection = self._own_collection(user, collection_id)
        self.collection_store.delete_collection(collection.id)
        log_event(LOGGER, logging.INFO, "collection_deleted", user_id=user.id, collection_id=collection.id)

    def add_item(self, user: User, collection_id: str, payload: CollectionItemAdd) -> CollectionItem:
        collection = self._own_collection(user, collection_id)
        item = self.wardrobe_store.get_item(payload.item_id)
        resolve_authorized_entity(item, can_view=lambda found: can_view_item(found, user.id)).unwrap("Item")
        return self.collection_store.add_item(collection.id, payload.item_id, self.clock())

    def remove_item(self, user: User, collection_id: str, item_id: str) -> None:
        collection = self._own_collection(user, collection_id)
        if not self.collection_store.remove_item(collection.id, item_id):
            raise NotFoundError("Item not in collection")


__all__ = ["CollectionService"]
