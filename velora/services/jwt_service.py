"""
JWT token service for user authentication.

Issues and validates the bearer tokens handed out at login.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from velora.core.config import Settings


class JWTService:
    """
    Creates and validates signed access tokens.

    Tokens carry the user id (``sub``) and email and expire after
    ``JWT_ACCESS_TOKEN_EXPIRE_MINUTES``.
    """

    TOKEN_TYPE_ACCESS = "access"

    def __init__(self, settings: Settings):
        self.secret_key = settings.JWT_SECRET_KEY
        self.algorithm = settings.JWT_ALGORITHM
        self.expire_minutes = settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES

    def create_access_token(
        self,
        user_id: str,
        email: str,
        expires_delta: timedelta | None = None,
    ) -> str:
        """
        Create a signed access token.

        Args:
            user_id: User's unique identifier.
            email: User's email address.
            expires_delta: Override for the configured lifetime.

        Returns:
            Encoded JWT access token.
        """
        now = datetime.now(UTC)
        expire = now + (expires_delta if expires_delta is not None else timedelta(minutes=self.expire_minutes))

        payload = {
            "sub": user_id,
            "email": email,
            "type": self.TOKEN_TYPE_ACCESS,
            "exp": expire,
            "iat": now,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> dict[str, Any] | None:
        """
        Verify and decode a JWT token.

        Returns:
            Decoded payload if valid, None if invalid or expired.
        """
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None

    def verify_access_token(self, token: str) -> dict[str, Any] | None:
        """Decoded payload if ``token`` is a valid access token, None otherwise."""
        payload = self.verify_token(token)
        if payload and payload.get("type") == self.TOKEN_TYPE_ACCESS and payload.get("sub"):
            return payload
        return None

    def get_token_expiry_seconds(self) -> int:
        """Get the access token expiry time in seconds."""
        return self.expire_minutes * 60
