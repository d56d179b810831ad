"""Authentication schemas."""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from queuego.schemas.user import UserResponse


class LoginRequest(BaseModel):
    """Login request body."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class RegisterRequest(BaseModel):
    """Registration request body."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=32)


class Token(BaseModel):
    """JWT token response."""

    access_token: str
    token_type: str = "bearer"


class AuthResponse(Token):
    """Token plus the authenticated user."""

    user: UserResponse
    message: str
