"""
Authentication API endpoints.

Provides user registration, login and the current-user lookup.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from velora.api.deps import get_auth_service
from velora.core.security import UserContext, require_authenticated_user
from velora.schemas.auth import LoginRequest, RegisterRequest, RegisterResponse, TokenResponse, UserInfo
from velora.services.auth_service import AuthService

router = APIRouter()


@router.post("/register", response_model=RegisterResponse)
async def register(
    request: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> RegisterResponse:
    """
    Register a new user account.

    **Request Body:**
    ```json
    {
        "email": "user@example.com",
        "password": "secret123"
    }
    ```

    Returns 400 if the email is already registered.
    """
    await auth_service.register(email=request.email, password=request.password)
    return RegisterResponse()


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    """
    Login with email and password.

    **Response:**
    ```json
    {
        "token": "eyJ...",
        "token_type": "bearer",
        "expires_in": 604800
    }
    ```

    **Using the token:**
    ```
    Authorization: Bearer eyJ...
    ```
    """
    return await auth_service.login(email=request.email, password=request.password)


@router.get("/me", response_model=UserInfo)
async def get_current_user_info(
    user_ctx: UserContext = Depends(require_authenticated_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> UserInfo:
    """Get information about the currently authenticated user."""
    user = await auth_service.get_user_by_id(user_ctx.user_id)
    if not user:
        # Token outlived its account
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return UserInfo(
        id=user.id,
        email=user.email,
        created_at=user.created_at.isoformat() if user.created_at else "",
    )
