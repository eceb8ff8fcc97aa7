"""AI styling features gated on the member's own key and monthly credits."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Type, TypeVar

from pydantic import BaseModel, ValidationError

from exchange_app.logging_config import get_logger, log_event
from logic.access import resolve_authorized_entity
from logic.credits import CreditStatus, credit_status
from logic.errors import ForbiddenError, QuotaExceededError, ValidationFailure
from logic.validation import AnalyzeImageInput, TryOnInput
from models.user import User
from services.wardrobe import can_view_item
from tools.database import utcnow
from tools.user_store import SQLiteUserStore
from tools.vision_provider import VisionProvider
from tools.wardrobe_store import SQLiteWardrobeStore

LOGGER = get_logger(__name__)
M = TypeVar("M", bound=BaseModel)


class AIService:
    def __init__(
        self,
        user_store: SQLiteUserStore,
        wardrobe_store: SQLiteWardrobeStore,
        vision_provider: VisionProvider,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.user_store = user_store
        self.wardrobe_store = wardrobe_store
        self.vision_provider = vision_provider
        self.clock = clock

    def credits(self, user: User) -> CreditStatus:
        return credit_status(
            user.membership_tier, user.ai_credits_used, user.credits_period_start, self.clock()
        )

    def _guard(self, user: User) -> CreditStatus:
        """Own key first, then credits; input is only checked after both pass."""

        if not user.gemini_api_key:
            raise ForbiddenError(
                "Add your Gemini API key in Settings to use AI features", needs_api_key=True
            )
        status = self.credits(user)
        if not status.has_credits:
            raise QuotaExceededError("No AI credits remaining", remaining=0, limit=status.limit)
        return status

    @staticmethod
    def _parse(schema: Type[M], body: Mapping[str, Any] | None) -> M:
        try:
            return schema.model_validate(dict(body or {}))
        except ValidationError as exc:
            first = exc.errors()[0] if exc.errors() else {}
            field = ".".join(str(part) for part in first.get("loc", ()))
            raise ValidationFailure(f"Invalid {field or 'request'}: {first.get('msg', 'invalid')}") from exc

    def _charge(self, user: User, operation: str) -> Dict[str, int]:
        charged = self.user_store.consume_ai_credit(user.id, self.clock())
        status = self.credits(charged)
        log_event(LOGGER, logging.INFO, "ai_credit_consumed", user_id=user.id, operation=operation)
        return {"credits_remaining": status.remaining, "credits_limit": status.limit}

    def analyze(self, user: User, body: Mapping[str, Any] | None) -> Dict[str, Any]:
        self._guard(user)
        payload = self._parse(AnalyzeImageInput, body)
        analysis = self.vision_provider.analyze_image(payload.image_url, user.gemini_api_key)
        return {"analysis": analysis, **self._charge(user, "analyze")}

    def recommendations(self, user: User) -> Dict[str, Any]:
        self._guard(user)
        wardrobe = [
            {"category": item.category.value, "colors": item.colors, "pattern": item.pattern}
            for item in self.wardrobe_store.list_items_for_owner(user.id)
        ]
        profile = {
            "preferred_styles": user.preferred_styles,
            "favorite_colors": user.favorite_colors,
            "size": user.size,
        }
        recommendations = self.vision_provider.recommend_items(profile, wardrobe, user.gemini_api_key)
        return {"recommendations": recommendations, **self._charge(user, "recommendations")}

    def try_on(self, user: User, body: Mapping[str, Any] | None) -> Dict[str, Any]:
        self._guard(user)
        payload = self._parse(TryOnInput, body)
        item = resolve_authorized_entity(
            self.wardrobe_store.get_item(payload.item_id),
            can_view=lambda found: can_view_item(found, user.id),
        ).unwrap("Item")
        primary = item.primary_image
        if primary is None:
            raise ValidationFailure("Item has no image")
        details = {
            "title": item.title,
            "category": item.category.value,
            "colors": item.colors,
            "pattern": item.pattern,
        }
        description = self.vision_provider.describe_try_on(
            payload.user_photo_url or user.avatar_url or "", primary.url, details, user.gemini_api_key
        )
        return {"description": description, **self._charge(user, "try_on")}


__all__ = ["AIService"]
