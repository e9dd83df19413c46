"""
Bearer-token authentication for the API.

Two dependencies are exposed:
1. ``get_current_user``: never fails; a missing, malformed, invalid or
   expired token yields a guest context (used by the chat endpoint).
2. ``require_authenticated_user``: rejects guests with 401 before the
   handler runs (used by every conversation/message endpoint).
"""

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request, status

from velora.services.jwt_service import JWTService


@dataclass
class UserContext:
    """
    Represents the current caller's identity.

    Attributes:
        user_id: Unique identifier for the user (None for guests)
        email: User's email (None for guests)
    """

    user_id: str | None = None
    email: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


GUEST = UserContext()


def extract_bearer_token(authorization: str | None) -> str | None:
    """Extract Bearer token from Authorization header."""
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) == 2 and parts[0].lower() == "bearer" and parts[1].strip():
        return parts[1].strip()
    return None


def resolve_user(jwt_service: JWTService, authorization: str | None) -> UserContext:
    """Map an Authorization header value to a user context, falling back to guest."""
    token = extract_bearer_token(authorization)
    if not token:
        return GUEST

    payload = jwt_service.verify_access_token(token)
    if not payload:
        return GUEST

    return UserContext(user_id=payload["sub"], email=payload.get("email"))


def get_jwt_service(request: Request) -> JWTService:
    return request.app.state.jwt_service


async def get_current_user(
    authorization: str | None = Header(None),
    jwt_service: JWTService = Depends(get_jwt_service),
) -> UserContext:
    """
    Identify the caller from the Authorization header.

    Returns:
        UserContext for a valid token, the guest context otherwise.
    """
    return resolve_user(jwt_service, authorization)


async def require_authenticated_user(
    user_ctx: UserContext = Depends(get_current_user),
) -> UserContext:
    """
    Dependency that requires an authenticated user.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired.
    """
    if not user_ctx.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_ctx
