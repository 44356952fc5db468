"""
Authentication API routes.
"""

from fastapi import APIRouter, Depends, Query, Response, status

from etfuel.auth.dependencies import (
    get_auth_service,
    get_bearer_token,
    get_optional_bearer_token,
)
from etfuel.auth.schemas import (
    AuthResponse,
    ErrorResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UpdateProfileRequest,
    UserDataResponse,
    UserResponse,
)
from etfuel.auth.service import AuthServiceProtocol
from etfuel.shared.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

# Cookies a previous session layer may have set.
SESSION_COOKIES = ("auth-token", "session", "user-token")

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    401: {"model": ErrorResponse, "description": "Not authenticated"},
    500: {"model": ErrorResponse, "description": "Server error"},
}


@router.post(
    "/login",
    response_model=AuthResponse,
    response_model_by_alias=True,
    responses=_ERROR_RESPONSES,
    summary="Log in with email and password",
)
async def login(
    data: LoginRequest,
    service: AuthServiceProtocol = Depends(get_auth_service),
) -> AuthResponse:
    """Verify the email/password pair and return a custom token.

    The client redeems ``customToken`` with the identity provider to obtain
    a live session whose ID token carries the ``role`` claim.
    """
    return await service.login(data.email, data.password)


@router.post(
    "/register",
    response_model=AuthResponse,
    response_model_by_alias=True,
    responses=_ERROR_RESPONSES,
    summary="Register a new account",
)
async def register(
    data: RegisterRequest,
    service: AuthServiceProtocol = Depends(get_auth_service),
) -> AuthResponse:
    return await service.register(data.email, data.password, data.name)


@router.post(
    "/logout",
    response_model=MessageResponse,
    response_model_exclude_none=True,
    summary="Clear session cookies",
)
async def logout(response: Response) -> MessageResponse:
    for name in SESSION_COOKIES:
        response.delete_cookie(name, path="/")
    logger.info("Logout")
    return MessageResponse(message="Logged out successfully")


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    summary="Send a password reset link",
)
async def reset_password(
    data: ResetPasswordRequest,
    service: AuthServiceProtocol = Depends(get_auth_service),
) -> MessageResponse:
    return await service.request_password_reset(data.email)


@router.get(
    "/user",
    response_model=UserResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    summary="Current user from the Bearer ID token",
)
async def current_user(
    token: str = Depends(get_bearer_token),
    service: AuthServiceProtocol = Depends(get_auth_service),
) -> UserResponse:
    return await service.get_current_user(token)


@router.put(
    "/update-profile",
    response_model=UserResponse,
    response_model_exclude_none=True,
    responses={
        **_ERROR_RESPONSES,
        404: {"model": ErrorResponse, "description": "Profile not found"},
    },
    summary="Update the caller's own profile",
)
async def update_profile(
    data: UpdateProfileRequest,
    token: str = Depends(get_bearer_token),
    service: AuthServiceProtocol = Depends(get_auth_service),
) -> UserResponse:
    return await service.update_profile(token, data)


@router.get(
    "/user-data",
    response_model=UserDataResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_200_OK,
    responses={
        **_ERROR_RESPONSES,
        404: {"model": ErrorResponse, "description": "Profile not found"},
    },
    summary="Profile record for a user id",
)
async def user_data(
    user_id: str | None = Query(None, alias="userId"),
    token: str | None = Depends(get_optional_bearer_token),
    service: AuthServiceProtocol = Depends(get_auth_service),
) -> UserDataResponse:
    return await service.get_user_data(user_id, token)
