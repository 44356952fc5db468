"""
Authentication service orchestrating the identity provider and profile store.

Login is a strictly sequential pipeline: verify credentials, match the
secret, resolve and publish the role claim, then mint the exchange token.
"""

from typing import Any, Protocol

import anyio

from etfuel.auth.models import (
    BASELINE_ROLE,
    DEFAULT_STATUS,
    LAST_LOGIN_FIELD,
    PASSWORD_HASH_FIELD,
    UPDATED_AT_FIELD,
    login_user_view,
    public_profile,
    resolve_role,
)
from etfuel.auth.passwords import check_password, hash_password
from etfuel.auth.schemas import (
    AuthResponse,
    MessageResponse,
    UpdateProfileRequest,
    UserDataResponse,
    UserResponse,
)
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
    ProviderConfigurationError,
)
from etfuel.shared.exceptions import (
    AuthenticationFailedError,
    ConflictError,
    InvalidCredentialsError,
    InvalidInputError,
    NotFoundError,
    PasswordResetError,
    ProfileMissingError,
    ProviderConfigError,
    ProviderError,
    UnauthorizedError,
    UnknownAccountError,
)
from etfuel.shared.logging import get_logger, mask_email

logger = get_logger(__name__)


class AuthServiceProtocol(Protocol):
    """Protocol for authentication service operations."""

    async def login(self, email: str | None, password: str | None) -> AuthResponse: ...
    async def register(
        self,
        email: str | None,
        password: str | None,
        name: str | None,
    ) -> AuthResponse: ...
    async def request_password_reset(self, email: str | None) -> MessageResponse: ...
    async def update_profile(self, token: str, changes: UpdateProfileRequest) -> UserResponse: ...
    async def get_current_user(self, token: str) -> UserResponse: ...
    async def get_user_data(self, user_id: str | None, token: str | None) -> UserDataResponse: ...


def _provider_error(e: IdentityProviderError) -> ProviderError:
    if isinstance(e, ProviderConfigurationError):
        return ProviderConfigError(details={"error": str(e)})
    return ProviderError(details={"error": str(e)})


class AuthService:
    """Service for authentication operations."""

    def __init__(
        self,
        identity: IdentityProvider,
        profiles: ProfileStore,
        settings: Settings | None = None,
    ) -> None:
        """Initialize authentication service.

        Args:
            identity: Managed-auth provider.
            profiles: Profile document store.
            settings: Application settings.
        """
        self._identity = identity
        self._profiles = profiles
        self._settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def login(self, email: str | None, password: str | None) -> AuthResponse:
        """Authenticate an email/password pair and mint an exchange token.

        Raises:
            InvalidInputError: If email or password is missing.
            InvalidCredentialsError: If the pair does not authenticate.
            ProviderError: If the provider or store call fails.
            AuthenticationFailedError: If the token cannot be minted.
        """
        if not email or not password:
            raise InvalidInputError("Email and password are required")

        logger.info("Login attempt", extra={"email": mask_email(email)})

        try:
            account, profile = await self._verify_credentials(email)
            await self._match_secret(password, profile)
        except InvalidCredentialsError as e:
            logger.info(
                "Login rejected",
                extra={"email": mask_email(email), "reason": e.reason},
            )
            raise

        role = await self._resolve_role(account, profile)
        profile = await self._reload_profile(account.uid, fallback=profile)
        custom_token = await self._bootstrap_session(account.uid, role)

        logger.info("Login successful", extra={"uid": account.uid, "role": role})

        return AuthResponse(
            message="Login successful",
            user=login_user_view(account, profile, role),
            custom_token=custom_token,
        )

    async def _verify_credentials(self, email: str) -> tuple[AccountRecord, dict[str, Any]]:
        """Look up the account and its profile record."""
        try:
            account = await self._identity.get_account_by_email(email)
        except AccountNotFoundError as e:
            raise UnknownAccountError() from e
        except IdentityProviderError as e:
            # The provider being unreachable here is a server-side misconfiguration.
            logger.error("Account lookup failed", extra={"error": str(e)})
            raise ProviderConfigError(details={"error": str(e)}) from e

        try:
            profile = await self._profiles.get(account.uid)
        except IdentityProviderError as e:
            logger.error("Profile lookup failed", extra={"uid": account.uid, "error": str(e)})
            raise _provider_error(e) from e

        if profile is None:
            logger.warning("Account has no profile record", extra={"uid": account.uid})
            raise ProfileMissingError(details={"uid": account.uid})

        return account, profile

    async def _match_secret(self, password: str, profile: dict[str, Any]) -> None:
        # bcrypt is deliberately slow; keep it off the event loop.
        await anyio.to_thread.run_sync(
            check_password, password, profile.get(PASSWORD_HASH_FIELD)
        )

    async def _resolve_role(self, account: AccountRecord, profile: dict[str, Any]) -> str:
        """Publish the profile role as a custom claim and stamp the login."""
        role = resolve_role(profile)
        await self._assign_role_claim(account.uid, role)

        try:
            await self._profiles.update(
                account.uid,
                {},
                timestamps=(LAST_LOGIN_FIELD, UPDATED_AT_FIELD),
            )
        except IdentityProviderError as e:
            logger.error("Failed to record login", extra={"uid": account.uid, "error": str(e)})
            raise _provider_error(e) from e

        return role

    async def _assign_role_claim(self, uid: str, role: str) -> None:
        """Best-effort custom claim write; a stale claim never blocks the caller."""
        try:
            await self._identity.set_custom_claims(uid, {"role": role})
        except IdentityProviderError as e:
            logger.warning(
                "Failed to set role claim",
                extra={"uid": uid, "role": role, "error": str(e)},
            )
            return
        logger.info("Role claim set", extra={"uid": uid, "role": role})

    async def _reload_profile(self, uid: str, fallback: dict[str, Any]) -> dict[str, Any]:
        try:
            profile = await self._profiles.get(uid)
        except IdentityProviderError as e:
            raise _provider_error(e) from e
        return profile if profile is not None else fallback

    async def _bootstrap_session(self, uid: str, role: str) -> str:
        """Mint the exchange token the client redeems for a live session."""
        try:
            return await self._identity.create_custom_token(uid, {"role": role})
        except IdentityProviderError as e:
            logger.error("Custom token mint failed", extra={"uid": uid, "error": str(e)})
            raise AuthenticationFailedError(details={"error": str(e)}) from e

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def register(
        self,
        email: str | None,
        password: str | None,
        name: str | None,
    ) -> AuthResponse:
        """Create an account and its profile record, then mint an exchange token.

        Raises:
            InvalidInputError: If a field is missing or rejected by the provider.
            ConflictError: If the email is already registered.
            ProviderError: If the provider or store call fails.
            AuthenticationFailedError: If the token cannot be minted.
        """
        if not email or not password or not name:
            raise InvalidInputError("All fields are required")

        logger.info("Registration attempt", extra={"email": mask_email(email)})

        await self._ensure_unregistered(email)

        password_hash = await anyio.to_thread.run_sync(
            hash_password, password, self._settings.password_hash_rounds
        )

        try:
            account = await self._identity.create_account(email, password, name)
        except AccountExistsError as e:
            raise ConflictError(details={"error": str(e)}) from e
        except InvalidAccountDataError as e:
            message = (
                "Password is too weak" if e.error_code == "weak-password" else "Invalid email address"
            )
            raise InvalidInputError(message, details={"error": str(e)}) from e
        except IdentityProviderError as e:
            logger.error("Account creation failed", extra={"error": str(e)})
            raise _provider_error(e) from e

        role = BASELINE_ROLE.value
        await self._assign_role_claim(account.uid, role)

        try:
            await self._profiles.create(
                account.uid,
                {
                    "email": email,
                    "name": name,
                    PASSWORD_HASH_FIELD: password_hash,
                    "role": role,
                    "status": DEFAULT_STATUS,
                },
            )
        except IdentityProviderError as e:
            logger.error("Profile creation failed", extra={"uid": account.uid, "error": str(e)})
            raise _provider_error(e) from e

        custom_token = await self._bootstrap_session(account.uid, role)

        logger.info("Registration successful", extra={"uid": account.uid})

        return AuthResponse(
            message="Registration successful",
            user={
                "uid": account.uid,
                "email": account.email,
                "name": account.display_name,
                "role": role,
            },
            custom_token=custom_token,
        )

    async def _ensure_unregistered(self, email: str) -> None:
        try:
            existing = await self._identity.get_account_by_email(email)
        except AccountNotFoundError:
            return
        except IdentityProviderError as e:
            raise _provider_error(e) from e

        logger.info("Email already registered", extra={"uid": existing.uid})
        raise ConflictError()

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    async def request_password_reset(self, email: str | None) -> MessageResponse:
        if not email:
            raise InvalidInputError("Email is required")

        try:
            link = await self._identity.generate_password_reset_link(
                email, self._settings.password_reset_url
            )
        except AccountNotFoundError as e:
            raise PasswordResetError("No account found with this email") from e
        except IdentityProviderError as e:
            logger.error("Password reset link failed", extra={"error": str(e)})
            raise PasswordResetError(details={"error": str(e)}) from e

        logger.info("Password reset link generated", extra={"email": mask_email(email)})
        logger.debug("Password reset link", extra={"reset_link": link})

        return MessageResponse(
            message="Password reset email sent",
            reset_link=link if self._settings.is_development else None,
        )

    # ------------------------------------------------------------------
    # Bearer-token operations
    # ------------------------------------------------------------------

    async def verify_token(self, token: str, failure_message: str = "Unauthorized") -> DecodedIdToken:
        """Verify an ID token presented as a Bearer credential."""
        try:
            return await self._identity.verify_id_token(token)
        except InvalidIdTokenError as e:
            logger.warning("ID token rejected", extra={"error": str(e)})
            raise UnauthorizedError(failure_message) from e
        except IdentityProviderError as e:
            raise _provider_error(e) from e

    async def _get_profile(self, uid: str) -> dict[str, Any]:
        try:
            profile = await self._profiles.get(uid)
        except IdentityProviderError as e:
            raise _provider_error(e) from e
        if profile is None:
            raise NotFoundError("User not found", details={"uid": uid})
        return profile

    async def get_current_user(self, token: str) -> UserResponse:
        decoded = await self.verify_token(token, "Authentication failed")
        profile = await self._get_profile(decoded.uid)

        return UserResponse(
            user={
                "uid": decoded.uid,
                "email": decoded.email,
                "name": decoded.name or profile.get("name"),
                "emailVerified": decoded.email_verified,
                "role": resolve_role(profile),
                "status": profile.get("status") or DEFAULT_STATUS,
                "permissions": profile.get("permissions") or [],
            }
        )

    async def update_profile(self, token: str, changes: UpdateProfileRequest) -> UserResponse:
        """Apply name/role/status changes to the caller's own profile.

        Self-service only: there is no role check, so any authenticated
        caller may set their own ``role`` (``admin`` included) and the role
        claim is rewritten to match.
        """
        decoded = await self.verify_token(token)

        fields: dict[str, Any] = {}
        if changes.name:
            fields["name"] = changes.name
        if changes.role:
            fields["role"] = changes.role.value
        if changes.status:
            fields["status"] = changes.status

        try:
            if changes.name:
                await self._identity.update_display_name(decoded.uid, changes.name)
            await self._profiles.update(decoded.uid, fields)
        except (AccountNotFoundError, ProfileNotFoundError) as e:
            raise NotFoundError("User not found", details={"uid": decoded.uid}) from e
        except IdentityProviderError as e:
            logger.error("Profile update failed", extra={"uid": decoded.uid, "error": str(e)})
            raise _provider_error(e) from e

        if changes.role:
            await self._assign_role_claim(decoded.uid, changes.role.value)

        profile = await self._get_profile(decoded.uid)

        logger.info(
            "Profile updated",
            extra={"uid": decoded.uid, "fields": sorted(fields)},
        )

        return UserResponse(
            message="Profile updated successfully",
            user={
                "uid": decoded.uid,
                "email": decoded.email,
                "name": changes.name or profile.get("name") or decoded.name,
                "emailVerified": decoded.email_verified,
                "role": resolve_role(profile),
                "status": profile.get("status") or DEFAULT_STATUS,
            },
        )

    async def get_user_data(self, user_id: str | None, token: str | None) -> UserDataResponse:
        """Profile record for ``user_id`` with the password hash removed.

        The token is optional; when one is presented it must verify.
        """
        if not user_id:
            raise InvalidInputError("User ID is required")

        if token is not None:
            await self.verify_token(token)

        profile = await self._get_profile(user_id)

        return UserDataResponse(user_data={"uid": user_id, **public_profile(profile)})
