"""Identity resolution for inbound senders.

Two modes, selected by IDENTITY_MODE:
- "placeholder" (default): every sender gets a throwaway identity.
- "registered": only active users in the users table are served.
"""

from __future__ import annotations

import os
import uuid
from typing import Protocol

from wabridge.domain.models import UserContext
from wabridge.infra.db import txn
from wabridge.infra.repositories.users_repository import get_user_by_phone, is_user_eligible

PLACEHOLDER_NAME = "Dummy"
PLACEHOLDER_EMAIL = "dummy@email.com"

IDENTITY_MODES = ("placeholder", "registered")


class IdentityResolver(Protocol):
    """Builds the user context for a sender phone."""

    def resolve(self, phone: str, push_name: str | None = None) -> UserContext | None:
        """Return the user context, or None if the sender is not eligible."""
        ...


class PlaceholderIdentityResolver:
    """Stand-in identity for deployments without user registration."""

    def resolve(self, phone: str, push_name: str | None = None) -> UserContext | None:
        return UserContext(
            user_id=uuid.uuid4(),
            name=PLACEHOLDER_NAME,
            phone=phone,
            email=PLACEHOLDER_EMAIL,
        )


class RegisteredUserIdentityResolver:
    """Looks the sender up in the users table."""

    def resolve(self, phone: str, push_name: str | None = None) -> UserContext | None:
        with txn() as cur:
            if not is_user_eligible(cur, phone):
                return None
            user = get_user_by_phone(cur, phone)

        if user is None:
            return None
        return UserContext(
            user_id=user.id,
            name=user.name,
            phone=user.phone,
            email=user.email,
        )


def resolver_from_env() -> IdentityResolver:
    """Build the resolver selected by IDENTITY_MODE.

    Raises:
        ValueError: If IDENTITY_MODE is not a known mode.
    """
    mode = os.environ.get("IDENTITY_MODE", "placeholder").strip().lower()
    if mode == "placeholder":
        return PlaceholderIdentityResolver()
    if mode == "registered":
        return RegisteredUserIdentityResolver()
    raise ValueError(f"Unknown IDENTITY_MODE: {mode} (expected one of {IDENTITY_MODES})")
