"""
Identity provider factory.

Single source of truth for backend selection: ``Settings.identity_provider``.
"""

from __future__ import annotations

from functools import lru_cache

from etfuel.config import IdentityProviderType, get_settings
from etfuel.identity.firebase_adapter import FirebaseIdentityProvider, FirestoreProfileStore
from etfuel.identity.interface import IdentityProvider, ProfileStore
from etfuel.identity.memory_adapter import InMemoryIdentityProvider, InMemoryProfileStore
from etfuel.shared.logging import get_logger

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_identity_provider() -> IdentityProvider:
    """Create and cache the identity provider."""
    settings = get_settings()
    provider_type = settings.identity_provider

    logger.info("Identity provider resolved", extra={"provider_type": provider_type.value})

    if provider_type == IdentityProviderType.FIREBASE:
        return FirebaseIdentityProvider()

    if provider_type == IdentityProviderType.MEMORY:
        return InMemoryIdentityProvider(settings)

    raise ValueError(f"Unsupported identity provider: {provider_type}")


@lru_cache(maxsize=1)
def get_profile_store() -> ProfileStore:
    """Create and cache the profile store matching the identity provider."""
    provider_type = get_settings().identity_provider

    if provider_type == IdentityProviderType.FIREBASE:
        return FirestoreProfileStore()

    if provider_type == IdentityProviderType.MEMORY:
        return InMemoryProfileStore()

    raise ValueError(f"Unsupported identity provider: {provider_type}")
