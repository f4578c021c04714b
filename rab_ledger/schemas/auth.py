"""Pydantic schemas for login and the current user."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from rab_ledger.models.user import UserRole


class LoginPayload(BaseModel):
    """Payload for POST /api/auth/login."""

    email: str = Field(..., min_length=3, description="Login email")
    password: str = Field(..., min_length=1, description="Password")


class UserResponse(BaseModel):
    """Public view of a user."""

    id: int
    name: str
    email: str
    role: UserRole
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    """Issued bearer token."""

    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponse
