"""
Pydantic schemas for authentication requests and response envelopes.

Every response carries ``success``; field names on the wire are camelCase.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from etfuel.auth.models import UserRole


class LoginRequest(BaseModel):
    """Login request. Presence is checked by the service, not the schema."""

    email: str | None = Field(None, description="Account email")
    password: str | None = Field(None, description="Plaintext password")


class RegisterRequest(BaseModel):
    email: str | None = Field(None, description="Account email")
    password: str | None = Field(None, description="Plaintext password")
    name: str | None = Field(None, description="Display name")


class ResetPasswordRequest(BaseModel):
    email: str | None = Field(None, description="Account email")


class UpdateProfileRequest(BaseModel):
    name: str | None = Field(None, description="New display name")
    role: UserRole | None = Field(None, description="New role")
    status: str | None = Field(None, description="New account status")


class EnvelopeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = Field(default=True)


class AuthResponse(EnvelopeResponse):
    """Login/registration response carrying the exchange token."""

    message: str
    user: dict[str, Any] = Field(..., description="Denormalized account and profile view")
    custom_token: str = Field(
        ...,
        alias="customToken",
        description="Short-lived token the client redeems for a session",
    )


class MessageResponse(EnvelopeResponse):
    message: str
    reset_link: str | None = Field(
        None,
        alias="resetLink",
        description="Password reset link (development only)",
    )


class UserResponse(EnvelopeResponse):
    message: str | None = None
    user: dict[str, Any]


class UserDataResponse(EnvelopeResponse):
    user_data: dict[str, Any] = Field(..., alias="userData")


class ErrorResponse(BaseModel):
    success: bool = Field(default=False)
    error: str
    details: str | None = None
