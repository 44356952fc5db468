"""
Client session store.

Holds the one current session together with the role and profile derived
from it, and notifies subscribers whenever they change.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

import httpx

from etfuel.auth.models import BASELINE_ROLE
from etfuel.client.api import ApiError, EtfuelApiClient
from etfuel.client.config import ClientConfig
from etfuel.client.identity import (
    IdentityToolkitClient,
    IdentityToolkitError,
    InvalidCustomTokenError,
    Session,
    role_from_id_token,
)
from etfuel.shared.logging import get_logger, mask_email

logger = get_logger(__name__)

NETWORK_ERROR = "Network error. Please check your connection."
TOKEN_EXPIRED_ERROR = "Session token expired. Please try again."
LOGIN_FAILED_ERROR = "Login failed. Please try again."
REGISTRATION_FAILED_ERROR = "Registration failed. Please try again."
RESET_FAILED_ERROR = "Failed to send reset email"

# Identity Toolkit error codes with a reset message of their own.
_RESET_ERRORS = {
    "EMAIL_NOT_FOUND": "No account found with this email",
    "INVALID_EMAIL": "Invalid email address",
}

Subscriber = Callable[["SessionStore"], None]


@dataclass(frozen=True)
class AuthResult:
    success: bool
    error: str | None = None
    user_data: dict[str, Any] | None = None


class SessionStore:
    """Explicit session context for one client.

    Usage::

        async with SessionStore(config) as store:
            result = await store.login(email, password)
            if result.success:
                print(store.role)
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or ClientConfig()
        self._http = http_client
        self._owns_http = http_client is None
        self._api: EtfuelApiClient | None = None
        self._identity: IdentityToolkitClient | None = None
        self._subscribers: list[Subscriber] = []

        self.session: Session | None = None
        self.role: str | None = None
        self.user_data: dict[str, Any] | None = None
        self.loading = True

    async def start(self) -> "SessionStore":
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self._config.http_timeout_seconds)
        self._api = EtfuelApiClient(self._http, self._config.api_base_url)
        self._identity = IdentityToolkitClient(self._http, self._config)
        self.loading = False
        self._notify()
        return self

    async def aclose(self) -> None:
        self.session = None
        self.role = None
        self.user_data = None
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None
        self._subscribers.clear()

    async def __aenter__(self) -> "SessionStore":
        return await self.start()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    @property
    def api(self) -> EtfuelApiClient:
        if self._api is None:
            raise RuntimeError("SessionStore is not started")
        return self._api

    @property
    def identity(self) -> IdentityToolkitClient:
        if self._identity is None:
            raise RuntimeError("SessionStore is not started")
        return self._identity

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            callback(self)

    async def _set_session(self, session: Session | None) -> None:
        self.session = session
        if session is None:
            self.role = None
            self.user_data = None
            self.loading = False
            self._notify()
            return

        self.loading = True
        self._notify()
        current = session
        try:
            try:
                refreshed = await self.identity.refresh(session)
                role = role_from_id_token(refreshed.id_token)
            except (IdentityToolkitError, httpx.HTTPError) as e:
                logger.warning("ID token refresh failed", extra={"error": str(e)})
                refreshed, role = session, BASELINE_ROLE.value
            if self.session is not current:
                logger.info("Session replaced during refresh", extra={"uid": session.uid})
                return

            user_data = await self._fetch_user_data(refreshed)
            if self.session is not current:
                logger.info("Session replaced during profile load", extra={"uid": session.uid})
                return

            self.session = current = refreshed
            self.role = role
            self.user_data = user_data
        finally:
            # A newer login or logout owns the loading flag now.
            if self.session is current:
                self.loading = False
                self._notify()

    async def _fetch_user_data(self, session: Session) -> dict[str, Any] | None:
        try:
            return await self.api.user_data(session.uid, session.id_token)
        except (ApiError, httpx.HTTPError) as e:
            logger.warning(
                "Failed to load user data",
                extra={"uid": session.uid, "error": str(e)},
            )
            return None

    async def _redeem(self, payload: dict[str, Any], failure_message: str) -> AuthResult:
        try:
            session = await self.identity.sign_in_with_custom_token(payload["customToken"])
        except InvalidCustomTokenError:
            return AuthResult(success=False, error=TOKEN_EXPIRED_ERROR)
        except IdentityToolkitError as e:
            logger.warning("Custom token sign-in failed", extra={"error_code": e.error_code})
            return AuthResult(success=False, error=failure_message)
        except httpx.TransportError:
            return AuthResult(success=False, error=NETWORK_ERROR)

        await self._set_session(session)
        return AuthResult(success=True, user_data=payload.get("user"))

    async def login(self, email: str, password: str) -> AuthResult:
        logger.info("Client login", extra={"email": mask_email(email)})
        try:
            payload = await self.api.login(email, password)
        except ApiError as e:
            return AuthResult(success=False, error=e.message)
        except httpx.TransportError:
            return AuthResult(success=False, error=NETWORK_ERROR)
        return await self._redeem(payload, LOGIN_FAILED_ERROR)

    async def register(self, email: str, password: str, name: str) -> AuthResult:
        logger.info("Client registration", extra={"email": mask_email(email)})
        try:
            payload = await self.api.register(email, password, name)
        except ApiError as e:
            return AuthResult(success=False, error=e.message)
        except httpx.TransportError:
            return AuthResult(success=False, error=NETWORK_ERROR)
        return await self._redeem(payload, REGISTRATION_FAILED_ERROR)

    async def reset_password(self, email: str) -> AuthResult:
        try:
            await self.identity.send_password_reset_email(email)
        except IdentityToolkitError as e:
            logger.warning(
                "Password reset request failed",
                extra={"email": mask_email(email), "error_code": e.error_code},
            )
            error = _RESET_ERRORS.get(e.error_code or "", RESET_FAILED_ERROR)
            return AuthResult(success=False, error=error)
        except httpx.TransportError:
            return AuthResult(success=False, error=NETWORK_ERROR)
        return AuthResult(success=True)

    async def logout(self) -> None:
        await self._set_session(None)

    async def refresh_user_data(self) -> None:
        session = self.session
        if session is None:
            return
        user_data = await self._fetch_user_data(session)
        if self.session is not session:
            return
        self.user_data = user_data
        self._notify()
