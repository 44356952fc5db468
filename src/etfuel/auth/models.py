"""
Roles and profile record helpers.

Profile records are plain Firestore documents (``users/{uid}``); these helpers
centralize the field names and the views built from them.
"""

from enum import Enum
from typing import Any

from etfuel.identity.interface import AccountRecord


class UserRole(str, Enum):
    ADMIN = "admin"
    UNION = "union"
    STATION = "station"
    DRIVER = "driver"


BASELINE_ROLE = UserRole.UNION
DEFAULT_STATUS = "active"

# Profile document fields
PASSWORD_HASH_FIELD = "passwordHash"
ROLE_FIELD = "role"
STATUS_FIELD = "status"
LAST_LOGIN_FIELD = "lastLogin"
CREATED_AT_FIELD = "createdAt"
UPDATED_AT_FIELD = "updatedAt"


def resolve_role(profile: dict[str, Any] | None) -> str:
    """Role stored on the profile, or the baseline role when absent."""
    role = (profile or {}).get(ROLE_FIELD)
    return role or BASELINE_ROLE.value


def public_profile(profile: dict[str, Any] | None) -> dict[str, Any]:
    """Copy of a profile document without the password hash."""
    return {k: v for k, v in (profile or {}).items() if k != PASSWORD_HASH_FIELD}


def login_user_view(
    account: AccountRecord,
    profile: dict[str, Any],
    role: str,
) -> dict[str, Any]:
    """Denormalized account + profile view returned by login."""
    return {
        **public_profile(profile),
        "uid": account.uid,
        "email": account.email,
        "name": account.display_name or profile.get("name"),
        "emailVerified": account.email_verified,
        "role": role,
    }
