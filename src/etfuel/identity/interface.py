"""
Identity provider and profile store interface definitions.

The managed-auth provider owns account records, custom claims and token
issuance; the profile store owns the application's own ``users`` documents.
Both SDKs are synchronous: the ``*_sync`` methods are the source of truth and
the async methods run them in a worker thread.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Sequence

import anyio

USERS_COLLECTION = "users"


@dataclass(frozen=True)
class AccountRecord:
    """Account as held by the identity provider."""

    uid: str
    email: str | None
    display_name: str | None = None
    email_verified: bool = False
    disabled: bool = False
    custom_claims: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DecodedIdToken:
    """Verified ID token presented as a Bearer credential."""

    uid: str
    email: str | None = None
    name: str | None = None
    email_verified: bool = False
    claims: dict[str, Any] = field(default_factory=dict)


class IdentityProviderError(Exception):
    """Base exception for identity provider and profile store errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        provider_response: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.provider_response = provider_response or {}


class AccountNotFoundError(IdentityProviderError):
    """No account exists for the given email or uid."""


class AccountExistsError(IdentityProviderError):
    """An account with this email already exists."""


class InvalidAccountDataError(IdentityProviderError):
    """The provider rejected account fields (malformed email, weak password)."""


class ProviderConfigurationError(IdentityProviderError):
    """The provider rejected the server's own credentials or is unreachable."""


class InvalidIdTokenError(IdentityProviderError):
    """A presented ID token is malformed, expired, revoked or forged."""


class TokenMintError(IdentityProviderError):
    """The provider could not sign a custom token."""


class ProfileNotFoundError(IdentityProviderError):
    """No profile document exists for the uid."""


class IdentityProvider(ABC):
    """Abstract interface for the managed-auth provider."""

    async def get_account_by_email(self, email: str) -> AccountRecord:
        return await anyio.to_thread.run_sync(self.get_account_by_email_sync, email)

    async def get_account(self, uid: str) -> AccountRecord:
        return await anyio.to_thread.run_sync(self.get_account_sync, uid)

    async def create_account(
        self,
        email: str,
        password: str,
        display_name: str,
    ) -> AccountRecord:
        return await anyio.to_thread.run_sync(
            self.create_account_sync, email, password, display_name
        )

    async def update_display_name(self, uid: str, display_name: str) -> AccountRecord:
        return await anyio.to_thread.run_sync(
            self.update_display_name_sync, uid, display_name
        )

    async def set_custom_claims(self, uid: str, claims: dict[str, Any]) -> None:
        await anyio.to_thread.run_sync(self.set_custom_claims_sync, uid, claims)

    async def create_custom_token(self, uid: str, claims: dict[str, Any]) -> str:
        return await anyio.to_thread.run_sync(self.create_custom_token_sync, uid, claims)

    async def verify_id_token(self, token: str) -> DecodedIdToken:
        return await anyio.to_thread.run_sync(self.verify_id_token_sync, token)

    async def generate_password_reset_link(self, email: str, continue_url: str) -> str:
        return await anyio.to_thread.run_sync(
            self.generate_password_reset_link_sync, email, continue_url
        )

    @abstractmethod
    def get_account_by_email_sync(self, email: str) -> AccountRecord: ...

    @abstractmethod
    def get_account_sync(self, uid: str) -> AccountRecord: ...

    @abstractmethod
    def create_account_sync(
        self,
        email: str,
        password: str,
        display_name: str,
    ) -> AccountRecord: ...

    @abstractmethod
    def update_display_name_sync(self, uid: str, display_name: str) -> AccountRecord: ...

    @abstractmethod
    def set_custom_claims_sync(self, uid: str, claims: dict[str, Any]) -> None: ...

    @abstractmethod
    def create_custom_token_sync(self, uid: str, claims: dict[str, Any]) -> str:
        """Mint a short-lived exchange token carrying ``claims``."""
        ...

    @abstractmethod
    def verify_id_token_sync(self, token: str) -> DecodedIdToken: ...

    @abstractmethod
    def generate_password_reset_link_sync(self, email: str, continue_url: str) -> str: ...


class ProfileStore(ABC):
    """Abstract interface for the profile document store.

    ``timestamps`` names fields the store fills with its own clock at write
    time (server timestamps on Firestore).
    """

    async def get(self, uid: str) -> dict[str, Any] | None:
        return await anyio.to_thread.run_sync(self.get_sync, uid)

    async def create(
        self,
        uid: str,
        data: dict[str, Any],
        timestamps: Sequence[str] = ("createdAt", "updatedAt"),
    ) -> None:
        await anyio.to_thread.run_sync(partial(self.create_sync, uid, data, timestamps))

    async def update(
        self,
        uid: str,
        data: dict[str, Any],
        timestamps: Sequence[str] = ("updatedAt",),
    ) -> None:
        await anyio.to_thread.run_sync(partial(self.update_sync, uid, data, timestamps))

    @abstractmethod
    def get_sync(self, uid: str) -> dict[str, Any] | None:
        """Return the profile document or None when it does not exist."""
        ...

    @abstractmethod
    def create_sync(
        self,
        uid: str,
        data: dict[str, Any],
        timestamps: Sequence[str] = ("createdAt", "updatedAt"),
    ) -> None: ...

    @abstractmethod
    def update_sync(
        self,
        uid: str,
        data: dict[str, Any],
        timestamps: Sequence[str] = ("updatedAt",),
    ) -> None:
        """Merge ``data`` into an existing document.

        Raises:
            ProfileNotFoundError: If the document does not exist.
        """
        ...
