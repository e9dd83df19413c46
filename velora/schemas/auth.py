"""Pydantic schemas for authentication API requests and responses."""

from pydantic import BaseModel, EmailStr, Field

# =============================================================================
# Registration
# =============================================================================


class RegisterRequest(BaseModel):
    """Request to register a new user account with email and password."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128, description="Password (minimum 6 characters)")


class RegisterResponse(BaseModel):
    """Response after successful registration."""

    message: str = "User created"


# =============================================================================
# Login
# =============================================================================


class LoginRequest(BaseModel):
    """Request to login with email and password."""

    email: EmailStr
    password: str = Field(..., max_length=128)


class TokenResponse(BaseModel):
    """Response containing the bearer token."""

    token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token expiry in seconds")


# =============================================================================
# User Info
# =============================================================================


class UserInfo(BaseModel):
    """Current user information (returned by /me)."""

    id: str
    email: str
    created_at: str
