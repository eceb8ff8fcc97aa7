"""Pydantic schemas for validating request bodies at the API boundary."""

from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Dict, FrozenSet, Iterable, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models.creator import DiscountType
from models.swap import DeliveryMethod
from models.wardrobe_item import ClothingCategory, ItemCondition, ItemStatus

MAX_MESSAGE_LENGTH = 2000


class StrictModel(BaseModel):
    """Base schema rejecting unknown fields."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class PartialUpdate(StrictModel):
    """Base schema for PATCH bodies: omitted keys are left alone, ``null`` clears a field.

    Keys listed in ``non_nullable`` back required columns, so an explicit
    ``null`` for them is rejected instead of reaching the store.
    """

    non_nullable: ClassVar[FrozenSet[str]] = frozenset()

    @model_validator(mode="before")
    @classmethod
    def _reject_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            nulled = sorted(key for key in cls.non_nullable if key in data and data[key] is None)
            if nulled:
                raise ValueError(f"Fields cannot be null: {', '.join(nulled)}")
        return data


class UserProfileUpdate(PartialUpdate):
    non_nullable = frozenset(
        {"display_name", "preferences", "privacy_settings", "preferred_styles", "favorite_colors"}
    )

    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    avatar_url: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=1000)
    phone_number: Optional[str] = Field(None, max_length=32)
    preferences: Optional[Dict[str, Any]] = None
    privacy_settings: Optional[Dict[str, Any]] = None
    preferred_styles: Optional[List[str]] = None
    favorite_colors: Optional[List[str]] = None
    size: Optional[str] = Field(None, max_length=20)


class ShippingAddressInput(StrictModel):
    name: str = Field(min_length=1)
    line1: str = Field(min_length=1)
    line2: Optional[str] = None
    city: str = Field(min_length=1)
    state: str = Field(min_length=2, max_length=2)
    postal_code: str = Field(min_length=3, max_length=10)
    country: str = Field("US", min_length=2, max_length=2)
    phone: Optional[str] = None

    @field_validator("state", "country")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.upper()


class GeminiKeyInput(StrictModel):
    api_key: str = Field(min_length=10)

    @field_validator("api_key")
    @classmethod
    def _looks_like_gemini_key(cls, value: str) -> str:
        if not value.startswith("AIza"):
            raise ValueError("Invalid Gemini API key format")
        return value


class AIConsentInput(StrictModel):
    consent: bool


class WardrobeItemCreate(StrictModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    category: ClothingCategory
    subcategory: Optional[str] = None
    brand: Optional[str] = None
    size: str = Field(min_length=1, max_length=20)
    colors: List[str] = Field(default_factory=list)
    pattern: Optional[str] = None
    condition: ItemCondition
    tags: List[str] = Field(default_factory=list)
    estimated_value_cents: Optional[int] = Field(None, ge=0)
    available_for_swap: bool = True
    available_for_sale: bool = False
    sale_price_cents: Optional[int] = Field(None, gt=0)
    weight_oz: Optional[float] = Field(None, gt=0)
    images: List[str] = Field(default_factory=list, max_length=10)

    @model_validator(mode="after")
    def _sale_needs_price(self) -> "WardrobeItemCreate":
        if self.available_for_sale and self.sale_price_cents is None:
            raise ValueError("sale_price_cents is required when available_for_sale is set")
        return self


class WardrobeItemUpdate(PartialUpdate):
    non_nullable = frozenset(
        {
            "title",
            "category",
            "size",
            "condition",
            "colors",
            "tags",
            "available_for_swap",
            "available_for_sale",
            "images",
        }
    )

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    category: Optional[ClothingCategory] = None
    subcategory: Optional[str] = None
    brand: Optional[str] = None
    size: Optional[str] = Field(None, min_length=1, max_length=20)
    colors: Optional[List[str]] = None
    pattern: Optional[str] = None
    condition: Optional[ItemCondition] = None
    tags: Optional[List[str]] = None
    estimated_value_cents: Optional[int] = Field(None, ge=0)
    available_for_swap: Optional[bool] = None
    available_for_sale: Optional[bool] = None
    sale_price_cents: Optional[int] = Field(None, gt=0)
    weight_oz: Optional[float] = Field(None, gt=0)
    images: Optional[List[str]] = Field(None, max_length=10)


class WardrobeFilters(StrictModel):
    category: Optional[ClothingCategory] = None
    status: Optional[ItemStatus] = None
    available_for_swap: Optional[bool] = None
    search: Optional[str] = None


class CollectionCreate(StrictModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    is_public: bool = False
    tags: List[str] = Field(default_factory=list)
    cover_image_url: Optional[str] = None


class CollectionUpdate(PartialUpdate):
    non_nullable = frozenset({"name", "is_public", "tags"})

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    is_public: Optional[bool] = None
    tags: Optional[List[str]] = None
    cover_image_url: Optional[str] = None


class CollectionItemAdd(StrictModel):
    item_id: str = Field(min_length=1)


class SwapCreate(StrictModel):
    item_id: str = Field(min_length=1)
    delivery_method: DeliveryMethod
    message: Optional[str] = Field(None, max_length=MAX_MESSAGE_LENGTH)
    scheduled_pickup: Optional[datetime] = None
    scheduled_return: Optional[datetime] = None


class SwapActionInput(StrictModel):
    action: Literal["accept", "decline", "complete", "cancel"]


class MessageCreate(StrictModel):
    content: str = Field(min_length=1, max_length=MAX_MESSAGE_LENGTH)


class AnalyzeImageInput(StrictModel):
    image_url: str = Field(min_length=1)


class TryOnInput(StrictModel):
    item_id: str = Field(min_length=1)
    user_photo_url: Optional[str] = None


class CreatorProfileInput(StrictModel):
    store_name: str = Field(min_length=1, max_length=100)
    bio: Optional[str] = Field(None, max_length=2000)
    branding_colors: Dict[str, str] = Field(default_factory=dict)
    banner_image_url: Optional[str] = None
    social_links: Dict[str, str] = Field(default_factory=dict)


class PromotionCreate(StrictModel):
    title: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    code: str = Field(min_length=3, max_length=32, pattern=r"^[A-Za-z0-9_-]+$")
    discount_type: DiscountType
    discount_value: float = Field(gt=0)
    min_purchase_cents: Optional[int] = Field(None, ge=0)
    max_uses: Optional[int] = Field(None, gt=0)
    expires_at: Optional[datetime] = None

    @field_validator("code")
    @classmethod
    def _upper_code(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode="after")
    def _percentage_bound(self) -> "PromotionCreate":
        if self.discount_type is DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("percentage discounts cannot exceed 100")
        return self


class PayoutCreate(StrictModel):
    amount_cents: int = Field(gt=0)


class PaymentIntentCreate(StrictModel):
    item_id: str = Field(min_length=1)


class PaymentConfirm(StrictModel):
    item_id: str = Field(min_length=1)
    payment_intent_id: str = Field(min_length=1)


class ShippingRatesInput(StrictModel):
    from_address: ShippingAddressInput
    to_address: ShippingAddressInput
    weight_oz: Optional[float] = Field(None, gt=0)


class ShippingLabelInput(StrictModel):
    item_id: str = Field(min_length=1)
    rate_id: str = Field(min_length=1)
    to_address: ShippingAddressInput
    from_address: Optional[ShippingAddressInput] = None


class ValidationResult(BaseModel):
    """Error payload returned when a request body fails validation."""

    success: Literal[False] = False
    error: str
    details: List[Dict[str, Any]]


def validation_failure(message: str, errors: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Translate Pydantic error dicts into a consistent error payload."""

    details = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", ""), "type": error.get("type", "")}
        for error in errors
    ]
    return ValidationResult(error=message, details=details).model_dump()


__all__ = [
    "MAX_MESSAGE_LENGTH",
    "StrictModel",
    "PartialUpdate",
    "UserProfileUpdate",
    "ShippingAddressInput",
    "GeminiKeyInput",
    "AIConsentInput",
    "WardrobeItemCreate",
    "WardrobeItemUpdate",
    "WardrobeFilters",
    "CollectionCreate",
    "CollectionUpdate",
    "CollectionItemAdd",
    "SwapCreate",
    "SwapActionInput",
    "MessageCreate",
    "AnalyzeImageInput",
    "TryOnInput",
    "CreatorProfileInput",
    "PromotionCreate",
    "PayoutCreate",
    "PaymentIntentCreate",
    "PaymentConfirm",
    "ShippingRatesInput",
    "ShippingLabelInput",
    "ValidationResult",
    "validation_failure",
]
