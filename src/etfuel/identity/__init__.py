"""
Managed-auth provider and profile document store adapters.
"""

from etfuel.identity.interface import (
    AccountRecord,
    DecodedIdToken,
    IdentityProvider,
    IdentityProviderError,
    ProfileStore,
)

__all__ = [
    "AccountRecord",
    "DecodedIdToken",
    "IdentityProvider",
    "IdentityProviderError",
    "ProfileStore",
]
