"""Identity provider abstractions for authenticating API callers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Mapping, Optional

import requests
from pydantic import BaseModel, ValidationError

from logic.errors import AuthenticationError, UpstreamError
from models.tiers import MembershipTier, parse_tier
from models.user import SubscriptionStatus
from tools.observability import instrument_operation

LOGGER = logging.getLogger(__name__)

WHOP_TOKEN_HEADER = "x-whop-user-token"
DEV_USER_HEADER = "x-dev-user-id"
DEV_TIER_HEADER = "x-dev-user-tier"
DEV_USER_ID = "dev-user-123"


class _WhopUser(BaseModel):
    id: str
    username: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    profile_pic_url: Optional[str] = None


@dataclass
class Identity:
    """A verified caller as reported by the identity provider."""

    external_id: str
    display_name: str
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    membership_tier: MembershipTier = MembershipTier.BASIC
    subscription_status: SubscriptionStatus = SubscriptionStatus.INACTIVE


class IdentityProvider(ABC):
    @abstractmethod
    def authenticate(self, headers: Mapping[str, str]) -> Identity:
        """Return the verified caller or raise :class:`AuthenticationError`."""


class WhopIdentityProvider(IdentityProvider):
    """Verifies the user token forwarded by the Whop app iframe."""

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str = "https://api.whop.com",
        timeout_seconds: float = 5.0,
    ) -> None:
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.timeout_seconds = timeout_seconds

    @instrument_operation("whop.authenticate")
    def authenticate(self, headers: Mapping[str, str]) -> Identity:
        token = headers.get(WHOP_TOKEN_HEADER)
        if not token:
            raise AuthenticationError("Missing user token")

        request_headers = {"Authorization": f"Bearer {token}"}
        if self.api_key:
            request_headers["X-Api-Key"] = self.api_key
        try:
            response = requests.get(
                f"{self.api_base}/api/v5/me",
                headers=request_headers,
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as exc:
            LOGGER.error("Identity provider unreachable", extra={"error": str(exc)})
            raise UpstreamError("Identity provider unavailable") from exc

        if response.status_code in (401, 403):
            raise AuthenticationError("Invalid user token")
        if not 200 <= response.status_code < 300:
            raise UpstreamError("Identity provider returned an error")
        try:
            user = _WhopUser.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise UpstreamError("Identity provider returned an invalid response") from exc

        return Identity(
            external_id=user.id,
            display_name=user.name or user.username or "Member",
            email=user.email,
            avatar_url=user.profile_pic_url,
        )


class DevIdentityProvider(IdentityProvider):
    """Development-only provider trusting the ``x-dev-user-id`` header.

    The default dev user is a PRO member so every feature can be exercised
    locally; other ids start on BASIC unless ``x-dev-user-tier`` says otherwise.
    """

    def authenticate(self, headers: Mapping[str, str]) -> Identity:
        external_id = (headers.get(DEV_USER_HEADER) or DEV_USER_ID).strip()
        if not external_id:
            raise AuthenticationError("Missing dev user id")
        if external_id == DEV_USER_ID:
            return Identity(
                external_id=DEV_USER_ID,
                display_name="Dev User",
                email="dev@example.com",
                membership_tier=MembershipTier.PRO,
                subscription_status=SubscriptionStatus.ACTIVE,
            )
        tier = parse_tier(headers.get(DEV_TIER_HEADER, "BASIC")) or MembershipTier.BASIC
        return Identity(
            external_id=external_id,
            display_name=external_id,
            membership_tier=tier,
            subscription_status=SubscriptionStatus.ACTIVE,
        )


__all__ = [
    "Identity",
    "IdentityProvider",
    "WhopIdentityProvider",
    "DevIdentityProvider",
    "WHOP_TOKEN_HEADER",
    "DEV_USER_HEADER",
    "DEV_TIER_HEADER",
    "DEV_USER_ID",
]
