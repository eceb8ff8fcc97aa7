"""User record and shipping address model."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from models.tiers import MembershipTier


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    CANCELED = "CANCELED"


@dataclass
class ShippingAddress:
    """Postal address used for rate quotes and labels."""

    name: str
    line1: str
    city: str
    state: str
    postal_code: str
    country: str = "US"
    line2: Optional[str] = None
    phone: Optional[str] = None

    def __post_init__(self) -> None:
        self.state = self.state.strip().upper()
        self.country = self.country.strip().upper()

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ShippingAddress":
        return cls(
            name=str(payload["name"]),
            line1=str(payload["line1"]),
            line2=payload.get("line2"),
            city=str(payload["city"]),
            state=str(payload["state"]),
            postal_code=str(payload["postal_code"]),
            country=str(payload.get("country") or "US"),
            phone=payload.get("phone"),
        )


@dataclass
class User:
    """A marketplace member, keyed internally by ``id`` and externally by ``external_id``."""

    id: str
    external_id: str
    display_name: str
    created_at: datetime
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    phone_number: Optional[str] = None
    membership_tier: MembershipTier = MembershipTier.BASIC
    subscription_status: SubscriptionStatus = SubscriptionStatus.INACTIVE
    ai_credits_used: int = 0
    credits_period_start: Optional[datetime] = None
    gemini_api_key: Optional[str] = None
    ai_photo_consent: bool = False
    ai_consent_date: Optional[datetime] = None
    shipping_address: Optional[ShippingAddress] = None
    preferences: Dict[str, Any] = field(default_factory=dict)
    privacy_settings: Dict[str, Any] = field(default_factory=dict)
    preferred_styles: List[str] = field(default_factory=list)
    favorite_colors: List[str] = field(default_factory=list)
    size: Optional[str] = None
    last_login_at: Optional[datetime] = None

    def public_view(self) -> Dict[str, Any]:
        """Fields safe to show to other members."""

        return {
            "id": self.id,
            "display_name": self.display_name,
            "avatar_url": self.avatar_url,
            "membership_tier": self.membership_tier,
        }

    def private_view(self) -> Dict[str, Any]:
        """Fields returned to the user themselves; the AI key is never echoed."""

        return {
            "id": self.id,
            "external_id": self.external_id,
            "display_name": self.display_name,
            "email": self.email,
            "avatar_url": self.avatar_url,
            "bio": self.bio,
            "phone_number": self.phone_number,
            "membership_tier": self.membership_tier,
            "subscription_status": self.subscription_status,
            "ai_credits_used": self.ai_credits_used,
            "credits_period_start": self.credits_period_start,
            "has_gemini_key": bool(self.gemini_api_key),
            "ai_photo_consent": self.ai_photo_consent,
            "ai_consent_date": self.ai_consent_date,
            "shipping_address": self.shipping_address,
            "preferences": self.preferences,
            "privacy_settings": self.privacy_settings,
            "preferred_styles": self.preferred_styles,
            "favorite_colors": self.favorite_colors,
            "size": self.size,
            "created_at": self.created_at,
            "last_login_at": self.last_login_at,
        }


__all__ = ["SubscriptionStatus", "ShippingAddress", "User"]
