"""
Identity Toolkit REST client.

Redeems custom tokens for sessions, refreshes ID tokens and sends password
reset emails the way the provider's web SDK does.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import jwt

from etfuel.auth.models import BASELINE_ROLE
from etfuel.client.config import ClientConfig
from etfuel.shared.logging import get_logger

logger = get_logger(__name__)

_INVALID_CUSTOM_TOKEN_CODES = {"INVALID_CUSTOM_TOKEN", "CREDENTIAL_MISMATCH", "TOKEN_EXPIRED"}


class IdentityToolkitError(Exception):
    """The identity provider rejected a client request."""

    def __init__(self, message: str, error_code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class InvalidCustomTokenError(IdentityToolkitError):
    """The exchange token is expired, malformed or for another project."""


@dataclass(frozen=True)
class Session:
    """A signed-in client session."""

    uid: str
    id_token: str
    refresh_token: str
    expires_in: int = 3600


def role_from_id_token(id_token: str) -> str:
    """``role`` claim of an ID token, or the baseline role.

    The signature is not checked: the backend verifies every token it is sent.
    """
    try:
        claims = jwt.decode(id_token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        logger.warning("Unable to decode ID token claims")
        return BASELINE_ROLE.value
    role = claims.get("role")
    return role if isinstance(role, str) and role else BASELINE_ROLE.value


def _uid_from_id_token(id_token: str) -> str:
    claims = jwt.decode(id_token, options={"verify_signature": False})
    return claims.get("user_id") or claims["sub"]


class IdentityToolkitClient:
    """Client for the provider's public REST endpoints."""

    def __init__(self, http_client: httpx.AsyncClient, config: ClientConfig) -> None:
        self._http = http_client
        self._config = config

    def _params(self) -> dict[str, str]:
        return {"key": self._config.firebase_api_key}

    async def _post(self, url: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._http.post(url, params=self._params(), **kwargs)
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if response.status_code >= 400:
            error = payload.get("error") if isinstance(payload, dict) else None
            if isinstance(error, dict):
                error = error.get("message")
            code = str(error or f"HTTP_{response.status_code}")
            # Codes may carry a suffix: "TOO_MANY_ATTEMPTS_TRY_LATER : ..."
            code = code.split(" ", 1)[0]
            if code in _INVALID_CUSTOM_TOKEN_CODES:
                raise InvalidCustomTokenError(code, error_code=code)
            raise IdentityToolkitError(code, error_code=code)
        return payload

    async def sign_in_with_custom_token(self, custom_token: str) -> Session:
        payload = await self._post(
            f"{self._config.identity_toolkit_url}/accounts:signInWithCustomToken",
            json={"token": custom_token, "returnSecureToken": True},
        )
        id_token = payload["idToken"]
        return Session(
            uid=_uid_from_id_token(id_token),
            id_token=id_token,
            refresh_token=payload["refreshToken"],
            expires_in=int(payload.get("expiresIn", 3600)),
        )

    async def refresh(self, session: Session) -> Session:
        """Force-refresh the ID token so it reflects the latest custom claims."""
        payload = await self._post(
            f"{self._config.secure_token_url}/token",
            data={"grant_type": "refresh_token", "refresh_token": session.refresh_token},
        )
        return Session(
            uid=payload.get("user_id") or session.uid,
            id_token=payload["id_token"],
            refresh_token=payload.get("refresh_token") or session.refresh_token,
            expires_in=int(payload.get("expires_in", 3600)),
        )

    async def send_password_reset_email(self, email: str, continue_url: str | None = None) -> None:
        body: dict[str, Any] = {"requestType": "PASSWORD_RESET", "email": email}
        if continue_url:
            body["continueUrl"] = continue_url
        await self._post(f"{self._config.identity_toolkit_url}/accounts:sendOobCode", json=body)
