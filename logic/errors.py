"""Domain error hierarchy mapped onto HTTP status codes by the API layer."""

from __future__ import annotations

from typing import Any, Dict


class MarketplaceError(Exception):
    """Base class for failures surfaced to API callers."""

    status_code = 500
    public_message = "Internal server error"

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        super().__init__(message or self.public_message)
        self.message = message or self.public_message
        self.extra: Dict[str, Any] = extra


class AuthenticationError(MarketplaceError):
    """Raised when the request carries no valid identity."""

    status_code = 401
    public_message = "Unauthorized"


class ValidationFailure(MarketplaceError, ValueError):
    """Raised for malformed or missing input."""

    status_code = 400
    public_message = "Invalid request"


class StateConflictError(MarketplaceError):
    """Raised when an entity is no longer in the state an operation expects."""

    status_code = 400
    public_message = "Invalid state for this action"


class ForbiddenError(MarketplaceError):
    """Raised when the caller can see an entity but lacks the needed role."""

    status_code = 403
    public_message = "Forbidden"


class NotFoundError(MarketplaceError):
    """Raised when an entity is missing or hidden from the caller."""

    status_code = 404
    public_message = "Not found"


class QuotaExceededError(MarketplaceError):
    """Raised when a tier limit or AI credit allowance is exhausted."""

    status_code = 429
    public_message = "Limit reached"


class UpstreamError(MarketplaceError):
    """Raised when a payment, identity, AI or shipping collaborator fails."""

    status_code = 500
    public_message = "Upstream service failed"


__all__ = [
    "MarketplaceError",
    "AuthenticationError",
    "ValidationFailure",
    "StateConflictError",
    "ForbiddenError",
    "NotFoundError",
    "QuotaExceededError",
    "UpstreamError",
]
