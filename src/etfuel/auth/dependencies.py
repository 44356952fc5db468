"""
FastAPI dependencies for the authentication routes.
"""

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from etfuel.auth.service import AuthService
from etfuel.config import Settings, get_settings
from etfuel.identity.factory import get_identity_provider, get_profile_store
from etfuel.identity.interface import IdentityProvider, ProfileStore
from etfuel.shared.exceptions import UnauthorizedError

security = HTTPBearer(auto_error=False)


def get_auth_service(
    identity: IdentityProvider = Depends(get_identity_provider),
    profiles: ProfileStore = Depends(get_profile_store),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    return AuthService(identity, profiles, settings)


async def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """Bearer token from the Authorization header.

    Raises:
        UnauthorizedError: If the header is missing or not a Bearer credential.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("No token provided")
    return credentials.credentials


async def get_optional_bearer_token(
    authorization: str | None = Header(None),
) -> str | None:
    """Bearer token when an Authorization header is sent, else ``None``.

    Raises:
        UnauthorizedError: If the header is present but carries no Bearer token.
    """
    if authorization is None:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise UnauthorizedError("Unauthorized")
    return token
