"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema
generation. JSON keys are camelCase on the wire.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AuthRequest(CamelModel):
    """Request model for the single send-code / verify-code endpoint."""

    action: Literal["send-code", "verify-code"]
    email: str = Field(..., max_length=320, description="Email address (normalized server-side)")
    code: str | None = Field(default=None, max_length=16, description="6-digit code for verify-code")


class UserPayload(CamelModel):
    """Non-secret user fields, mirrored in the session_profile cookie."""

    id: str
    email: str
    display_name: str | None = None


class AuthResponse(CamelModel):
    """Response model for POST /v1/auth."""

    success: bool
    message: str | None = None
    state: str | None = None
    discount_code: str | None = None
    discount_percent: int | None = None
    is_new_user: bool | None = None
    needs_username: bool | None = None
    user: UserPayload | None = None


class ProfileRequest(CamelModel):
    """Request model for profile completion."""

    display_name: str = Field(..., max_length=64)
    full_name: str | None = Field(default=None, max_length=200)
    address: str | None = Field(default=None, max_length=500)
    country: str | None = Field(default=None, max_length=100)
    equipment: str | None = Field(default=None, max_length=1000, description="Comma-separated list")


class ProfileResponse(CamelModel):
    success: bool
    state: str
    user: UserPayload
    failed_fields: list[str] = Field(default_factory=list)


class SessionResponse(CamelModel):
    """Response model for GET /v1/auth/me."""

    success: bool
    user: UserPayload | None = None
    has_password: bool | None = None


class PasswordRequest(CamelModel):
    password: str = Field(..., max_length=128)


class EquipmentItem(CamelModel):
    id: int
    name: str
    created_at: datetime


class EquipmentRequest(CamelModel):
    name: str = Field(..., max_length=200)


class EquipmentListResponse(CamelModel):
    success: bool
    equipment: list[EquipmentItem]


class EquipmentResponse(CamelModel):
    success: bool
    equipment: EquipmentItem


class AccountProfileRequest(CamelModel):
    """Profile field edits. Omitted fields are unchanged; an empty string clears."""

    full_name: str | None = Field(default=None, max_length=200)
    address: str | None = Field(default=None, max_length=500)
    country: str | None = Field(default=None, max_length=100)


class AccountProfileResponse(CamelModel):
    """Response model for /v1/account/profile."""

    success: bool
    user: UserPayload
    full_name: str | None = None
    address: str | None = None
    country: str | None = None
    has_password: bool
    equipment: list[EquipmentItem]


class DiscountSignupRequest(CamelModel):
    email: EmailStr


class DiscountSignupResponse(CamelModel):
    success: bool
    message: str
    discount_code: str
    discount_percent: int
    subscribed: bool


class SuccessResponse(CamelModel):
    success: bool = True


class ErrorResponse(CamelModel):
    """Standard error response model."""

    success: Literal[False] = False
    error: str
    message: str
