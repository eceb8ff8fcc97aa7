"""Keyed one-way pseudonyms for member ids stored in item history."""

from __future__ import annotations

import hashlib
import hmac


def actor_pseudonym(user_id: str, secret: str) -> str:
    """Stable for a given secret, not reversible without brute force over ids."""

    digest = hmac.new(secret.encode("utf-8"), user_id.encode("utf-8"), hashlib.sha256)
    return f"anon_{digest.hexdigest()[:24]}"


__all__ = ["actor_pseudonym"]
