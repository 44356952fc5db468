"""
In-memory identity provider and profile store.

Used for local development (``IDENTITY_PROVIDER=memory``) and tests. Tokens
are HS256 JWTs signed with ``MEMORY_TOKEN_SECRET``; a custom token can be
redeemed for an ID token with :meth:`InMemoryIdentityProvider.sign_in_with_custom_token`,
mirroring what the client does against the real provider.
"""

import copy
import re
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Sequence

import jwt

from etfuel.config import Settings, get_settings
from etfuel.identity.interface import (
    AccountExistsError,
    AccountNotFoundError,
    AccountRecord,
    DecodedIdToken,
    IdentityProvider,
    IdentityProviderError,
    InvalidAccountDataError,
    InvalidIdTokenError,
    ProfileNotFoundError,
    ProfileStore,
)
from etfuel.shared.logging import get_logger

logger = get_logger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_ISSUER = "etfuel-memory"
_CUSTOM_TOKEN_AUDIENCE = "etfuel-memory/custom-token"
_ID_TOKEN_AUDIENCE = "etfuel-memory/id-token"


class _FailureInjector:
    """Per-operation failure configuration shared by the in-memory fakes."""

    def __init__(self) -> None:
        self._failures: dict[str, IdentityProviderError] = {}

    def configure_failure(self, operation: str, error: IdentityProviderError | None = None) -> None:
        self._failures[operation] = error or IdentityProviderError(
            message=f"Mock failure in {operation}",
            error_code="MOCK_ERROR",
        )

    def clear_failures(self) -> None:
        self._failures.clear()

    def _check(self, operation: str) -> None:
        error = self._failures.get(operation)
        if error is not None:
            raise error


class InMemoryIdentityProvider(_FailureInjector, IdentityProvider):
    """Identity provider keeping accounts in process memory."""

    def __init__(self, settings: Settings | None = None) -> None:
        super().__init__()
        self._settings = settings or get_settings()
        self._lock = threading.Lock()
        self._accounts: dict[str, AccountRecord] = {}
        self._reset_links: list[str] = []

    def reset(self) -> None:
        with self._lock:
            self._accounts.clear()
            self._reset_links.clear()
        self.clear_failures()

    @property
    def accounts(self) -> list[AccountRecord]:
        return list(self._accounts.values())

    @property
    def reset_links(self) -> list[str]:
        return self._reset_links.copy()

    def _find_by_email(self, email: str) -> AccountRecord | None:
        key = email.strip().lower()
        for account in self._accounts.values():
            if (account.email or "").lower() == key:
                return account
        return None

    def _require(self, uid: str) -> AccountRecord:
        account = self._accounts.get(uid)
        if account is None:
            raise AccountNotFoundError(
                message=f"No user record found for uid: {uid}",
                error_code="user-not-found",
            )
        return account

    def get_account_by_email_sync(self, email: str) -> AccountRecord:
        self._check("get_account_by_email")
        account = self._find_by_email(email)
        if account is None:
            raise AccountNotFoundError(
                message=f"No user record found for email: {email}",
                error_code="user-not-found",
            )
        return account

    def get_account_sync(self, uid: str) -> AccountRecord:
        self._check("get_account")
        return self._require(uid)

    def create_account_sync(
        self,
        email: str,
        password: str,
        display_name: str,
    ) -> AccountRecord:
        self._check("create_account")
        if not _EMAIL_RE.match(email or ""):
            raise InvalidAccountDataError(
                message=f'Malformed email address string: "{email}".',
                error_code="invalid-email",
            )
        if len(password or "") < 6:
            raise InvalidAccountDataError(
                message="Password must be a string at least 6 characters long.",
                error_code="weak-password",
            )
        with self._lock:
            if self._find_by_email(email) is not None:
                raise AccountExistsError(
                    message="The user with the provided email already exists.",
                    error_code="email-already-exists",
                )
            account = AccountRecord(
                uid=uuid.uuid4().hex[:28],
                email=email,
                display_name=display_name,
                email_verified=False,
            )
            self._accounts[account.uid] = account
        logger.info("Memory: account created", extra={"uid": account.uid})
        return account

    def update_display_name_sync(self, uid: str, display_name: str) -> AccountRecord:
        self._check("update_display_name")
        with self._lock:
            account = replace(self._require(uid), display_name=display_name)
            self._accounts[uid] = account
        return account

    def set_custom_claims_sync(self, uid: str, claims: dict[str, Any]) -> None:
        self._check("set_custom_claims")
        with self._lock:
            self._accounts[uid] = replace(self._require(uid), custom_claims=dict(claims))

    def create_custom_token_sync(self, uid: str, claims: dict[str, Any]) -> str:
        self._check("create_custom_token")
        now = datetime.now(timezone.utc)
        payload = {
            "iss": _ISSUER,
            "aud": _CUSTOM_TOKEN_AUDIENCE,
            "uid": uid,
            "claims": dict(claims),
            "iat": now,
            "exp": now + timedelta(hours=1),
        }
        return jwt.encode(payload, self._settings.memory_token_secret, algorithm="HS256")

    def sign_in_with_custom_token(self, custom_token: str) -> str:
        """Redeem a custom token for an ID token carrying the account's claims."""
        try:
            payload = jwt.decode(
                custom_token,
                self._settings.memory_token_secret,
                algorithms=["HS256"],
                audience=_CUSTOM_TOKEN_AUDIENCE,
                issuer=_ISSUER,
            )
        except jwt.InvalidTokenError as e:
            raise InvalidIdTokenError(str(e), error_code="invalid-custom-token") from e
        account = self._require(payload["uid"])
        return self.issue_id_token(account.uid, extra_claims=payload.get("claims"))

    def issue_id_token(self, uid: str, extra_claims: dict[str, Any] | None = None) -> str:
        """Issue an ID token for ``uid`` (what a signed-in client presents)."""
        account = self._require(uid)
        now = datetime.now(timezone.utc)
        payload = {
            **account.custom_claims,
            **(extra_claims or {}),
            "iss": _ISSUER,
            "aud": _ID_TOKEN_AUDIENCE,
            "sub": account.uid,
            "uid": account.uid,
            "email": account.email,
            "name": account.display_name,
            "email_verified": account.email_verified,
            "iat": now,
            "exp": now + timedelta(seconds=self._settings.memory_token_ttl_seconds),
        }
        return jwt.encode(payload, self._settings.memory_token_secret, algorithm="HS256")

    def verify_id_token_sync(self, token: str) -> DecodedIdToken:
        self._check("verify_id_token")
        try:
            payload = jwt.decode(
                token,
                self._settings.memory_token_secret,
                algorithms=["HS256"],
                audience=_ID_TOKEN_AUDIENCE,
                issuer=_ISSUER,
            )
        except jwt.InvalidTokenError as e:
            raise InvalidIdTokenError(str(e), error_code="invalid-id-token") from e

        if payload.get("uid") not in self._accounts:
            raise InvalidIdTokenError("Token subject no longer exists", error_code="user-not-found")

        reserved = {"iss", "aud", "sub", "uid", "email", "name", "email_verified", "iat", "exp"}
        return DecodedIdToken(
            uid=payload["uid"],
            email=payload.get("email"),
            name=payload.get("name"),
            email_verified=bool(payload.get("email_verified", False)),
            claims={k: v for k, v in payload.items() if k not in reserved},
        )

    def generate_password_reset_link_sync(self, email: str, continue_url: str) -> str:
        self._check("generate_password_reset_link")
        account = self.get_account_by_email_sync(email)
        link = f"{continue_url}?mode=resetPassword&oobCode={uuid.uuid4().hex}&uid={account.uid}"
        self._reset_links.append(link)
        return link


class InMemoryProfileStore(_FailureInjector, ProfileStore):
    """Profile store keeping documents in process memory."""

    def __init__(self) -> None:
        super().__init__()
        self._lock = threading.Lock()
        self._documents: dict[str, dict[str, Any]] = {}

    def reset(self) -> None:
        with self._lock:
            self._documents.clear()
        self.clear_failures()

    @property
    def documents(self) -> dict[str, dict[str, Any]]:
        return copy.deepcopy(self._documents)

    def get_sync(self, uid: str) -> dict[str, Any] | None:
        self._check("get")
        document = self._documents.get(uid)
        return copy.deepcopy(document) if document is not None else None

    def create_sync(
        self,
        uid: str,
        data: dict[str, Any],
        timestamps: Sequence[str] = ("createdAt", "updatedAt"),
    ) -> None:
        self._check("create")
        now = datetime.now(timezone.utc)
        with self._lock:
            self._documents[uid] = {**copy.deepcopy(data), **{name: now for name in timestamps}}

    def update_sync(
        self,
        uid: str,
        data: dict[str, Any],
        timestamps: Sequence[str] = ("updatedAt",),
    ) -> None:
        self._check("update")
        now = datetime.now(timezone.utc)
        with self._lock:
            document = self._documents.get(uid)
            if document is None:
                raise ProfileNotFoundError(
                    message=f"No document to update: users/{uid}",
                    error_code="not-found",
                )
            document.update(copy.deepcopy(data))
            document.update({name: now for name in timestamps})
